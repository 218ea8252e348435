from pydantic import BaseModel, Field
from typing import List, Optional, Tuple
from uuid import uuid4

from hrm_kpi.models.types import Score


class Assignment(BaseModel):
    """Marker → subject pair owned by the external assignment registry."""

    marker_admin_id: str = Field(..., min_length=1)
    subject_user_id: str = Field(..., min_length=1)
    is_active: bool = True


class CriterionScore(BaseModel):
    """Raw score a marker gave for one criterion."""

    criteria_id: str = Field(..., min_length=1)
    score_raw: Score = Field(..., ge=0)


class Submission(BaseModel):
    """
    One marker's evaluation of one subject for one week.
    Natural key: (week_id, subject_user_id, marker_admin_id).
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    week_id: str = Field(..., min_length=1)
    subject_user_id: str = Field(..., min_length=1)
    marker_admin_id: str = Field(..., min_length=1)
    per_criterion_scores: List[CriterionScore] = Field(default_factory=list)
    total_score: Score = Field(..., ge=0, le=100)
    comment: Optional[str] = None

    @property
    def natural_key(self) -> Tuple[str, str, str]:
        return (self.week_id, self.subject_user_id, self.marker_admin_id)
