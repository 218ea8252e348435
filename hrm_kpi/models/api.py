from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, List, Optional

from hrm_kpi.models.enumerations import PeriodStatus
from hrm_kpi.models.results import AdminCompliance, WeeklyResult


class ErrorResponse(BaseModel):
    """
    Standard error response model.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[dict] = Field(default=None, description="Additional error details")
    timestamp: datetime = Field(..., description="Error occurrence timestamp")


class ComputeWeekRequest(BaseModel):
    force: bool = Field(default=False, description="Recompute even though the week is LOCKED")


class ComputeMonthRequest(BaseModel):
    force: bool = Field(default=False, description="Recompute even though the month is LOCKED")
    lock: bool = Field(default=False, description="Lock the month after computing")
    refresh_weeks: bool = Field(
        default=False,
        description="Recompute every OPEN week of the month before rolling up"
    )


class WeekDetailResponse(BaseModel):
    week_key: str
    week_id: str
    status: PeriodStatus
    week_label: str
    weekly_results: List[WeeklyResult]
    compliance: List[AdminCompliance]


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    dependencies: Dict[str, str]
