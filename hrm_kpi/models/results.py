from pydantic import BaseModel, Field, model_validator
from uuid import uuid4
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Tuple

from hrm_kpi.models.enumerations import ActionType, ComplianceStatus, Tier
from hrm_kpi.models.types import Money, Score


class WeeklyResult(BaseModel):
    """
    Derived per-subject weekly score. Natural key: (week_id, subject_user_id).
    """

    week_id: str
    subject_user_id: str
    weekly_avg_score: Score = Field(..., ge=0, le=100)
    expected_markers_count: int = Field(..., ge=0)
    submitted_markers_count: int = Field(..., ge=0)
    is_complete: bool

    @model_validator(mode="after")
    def validate_completeness(self):
        """is_complete is exactly submitted >= expected."""
        if self.is_complete != (self.submitted_markers_count >= self.expected_markers_count):
            raise ValueError("is_complete must equal submitted_markers_count >= expected_markers_count")
        return self

    @property
    def natural_key(self) -> Tuple[str, str]:
        return (self.week_id, self.subject_user_id)


class AdminCompliance(BaseModel):
    """
    Derived per-marker weekly compliance. Natural key: (week_id, admin_user_id).
    """

    week_id: str
    admin_user_id: str
    expected_count: int = Field(..., ge=0)
    submitted_count: int = Field(..., ge=0)
    missed_count: int = Field(..., ge=0)
    status: ComplianceStatus

    @model_validator(mode="after")
    def validate_status(self):
        """status is OK iff nothing was missed."""
        expected = ComplianceStatus.OK if self.missed_count == 0 else ComplianceStatus.MISSED
        if self.status != expected:
            raise ValueError(f"status must be {expected.value} when missed_count={self.missed_count}")
        return self

    @property
    def natural_key(self) -> Tuple[str, str]:
        return (self.week_id, self.admin_user_id)


class SubjectMonthState(BaseModel):
    """
    Cross-month memory for one subject.

    The prior_* fields snapshot the state as it stood before last_month_key was
    applied, so recomputing that same month starts from the same baseline.
    """

    subject_user_id: str
    last_month_key: Optional[str] = None
    last_month_tier: Optional[Tier] = None
    consecutive_improvement_months: int = Field(default=0, ge=0)
    consecutive_fine_months: int = Field(default=0, ge=0)

    prior_month_key: Optional[str] = None
    prior_month_tier: Optional[Tier] = None
    prior_consecutive_improvement_months: int = Field(default=0, ge=0)
    prior_consecutive_fine_months: int = Field(default=0, ge=0)


class MonthlyResult(BaseModel):
    """
    Derived monthly outcome for one subject. Natural key: (month_id, subject_user_id).
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    month_id: str
    subject_user_id: str
    monthly_score: Score = Field(..., ge=0, le=100)
    tier: Tier
    action_type: ActionType
    base_fine: Money = Field(default=Decimal("0"), ge=0)
    month_fine_count: int = Field(default=0, ge=0)
    final_fine: Money = Field(default=Decimal("0"), ge=0)
    gift_type: Optional[ActionType] = None
    gift_amount: Optional[Money] = Field(default=None, ge=0)
    weeks_count_used: int = Field(..., ge=0)
    expected_weeks_count: int = Field(..., gt=0)
    is_complete_month: bool
    computed_at: datetime

    @model_validator(mode="after")
    def validate_weeks(self):
        """weeks_count_used <= expected_weeks_count; completeness is equality."""
        if self.weeks_count_used > self.expected_weeks_count:
            raise ValueError("weeks_count_used must be <= expected_weeks_count")
        if self.is_complete_month != (self.weeks_count_used == self.expected_weeks_count):
            raise ValueError("is_complete_month must equal weeks_count_used == expected_weeks_count")
        return self

    def same_outcome(self, other: "MonthlyResult") -> bool:
        """True when every derived field except id/computed_at matches."""
        exclude = {"id", "computed_at"}
        return self.model_dump(exclude=exclude) == other.model_dump(exclude=exclude)

    @property
    def natural_key(self) -> Tuple[str, str]:
        return (self.month_id, self.subject_user_id)


# =============================================================================
# COMPUTE CALL RESULTS
# =============================================================================


class WeekComputeResult(BaseModel):
    week_key: str
    week_id: str
    subjects_computed: int
    admins_computed: int
    notifications_queued: int
    forced: bool = False


class SubjectFailure(BaseModel):
    subject_user_id: str
    error: str


class MonthComputeResult(BaseModel):
    month_key: str
    month_id: str
    expected_weeks_count: int
    weeks_in_month: int
    computed_subjects_count: int
    skipped_subjects_count: int
    failures: List[SubjectFailure] = Field(default_factory=list)
    weeks_refreshed: int = 0
    notifications_queued: int = 0
    locked: bool = False
    forced: bool = False


class JobResult(BaseModel):
    """Outcome of a scheduled job run; skipped runs are not errors."""

    job: str
    action: str = Field(..., description="created | exists | computed | computed_and_locked | skipped")
    key: Optional[str] = None
    reason: Optional[str] = None
    message: str
    notifications_queued: int = 0
    week: Optional[WeekComputeResult] = None
    month: Optional[MonthComputeResult] = None
