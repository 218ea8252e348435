from pydantic import BaseModel, Field, model_validator
from uuid import uuid4
from datetime import date

from hrm_kpi.models.enumerations import PeriodStatus


class Week(BaseModel):
    """
    One evaluation week, anchored to its Friday.
    """

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique week identifier"
    )

    week_key: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}-\d{2}$",
        description="Friday date as YYYY-MM-DD"
    )

    friday_date: date = Field(
        ...,
        description="The Friday this week is anchored to"
    )

    status: PeriodStatus = Field(
        default=PeriodStatus.OPEN,
        description="OPEN accepts writes, LOCKED rejects them without force"
    )

    @model_validator(mode="after")
    def validate_friday(self):
        """week_key must be the ISO form of friday_date, and that date a Friday."""
        if self.friday_date.isoformat() != self.week_key:
            raise ValueError("week_key must equal friday_date (YYYY-MM-DD)")
        if self.friday_date.weekday() != 4:
            raise ValueError(f"{self.week_key} is not a Friday")
        return self

    @property
    def is_locked(self) -> bool:
        return self.status == PeriodStatus.LOCKED


class Month(BaseModel):
    """
    One calendar month containing every Friday that falls inside it.
    """

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique month identifier"
    )

    month_key: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="Calendar month as YYYY-MM"
    )

    start_date: date = Field(..., description="First day of the month")

    end_date: date = Field(..., description="Last day of the month")

    status: PeriodStatus = Field(
        default=PeriodStatus.OPEN,
        description="OPEN accepts writes, LOCKED rejects them without force"
    )

    @model_validator(mode="after")
    def validate_range(self):
        """Ensure end_date >= start_date."""
        if self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        return self

    @property
    def is_locked(self) -> bool:
        return self.status == PeriodStatus.LOCKED
