from pydantic import BaseModel, Field
from uuid import uuid4
from datetime import datetime, timezone
from typing import Optional

from hrm_kpi.models.enumerations import NotificationStatus, NotificationType


class NotificationIntent(BaseModel):
    """
    Outbox row: a request to notify a user, appended in the same transaction
    as the derived writes that caused it and drained by the dispatcher.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    type: NotificationType
    title: str = Field(..., max_length=200)
    message: str = Field(..., max_length=2000)
    link: Optional[str] = None
    status: NotificationStatus = NotificationStatus.PENDING
    attempts: int = Field(default=0, ge=0)
    last_error: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    dispatched_at: Optional[datetime] = None


class DispatchResult(BaseModel):
    sent: int = 0
    failed: int = 0
    remaining: int = 0
