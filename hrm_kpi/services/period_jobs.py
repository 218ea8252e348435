"""
services/period_jobs.py — Scheduled period jobs

Three idempotent jobs meant to be triggered by an external scheduler:

    ensure_current_week     daily     create this Friday's week, nudge markers with pending work
    compute_last_friday     Friday    compute the most recent Friday's week
    compute_month_if_ended  daily     on days 1-2, compute and lock the previous month

Dates are read in the organization timezone. A LOCKED period is reported as
skipped rather than raised.
"""

from datetime import datetime
from typing import Optional

import structlog

from hrm_kpi.config import settings
from hrm_kpi.core.exceptions import LockedStateError
from hrm_kpi.models.auth import OPERATOR_ROLES, AuthContext
from hrm_kpi.models.results import JobResult
from hrm_kpi.repositories.assignment_repository import AssignmentRepository
from hrm_kpi.repositories.notification_repository import NotificationOutboxRepository
from hrm_kpi.repositories.period_repository import MonthRepository
from hrm_kpi.repositories.submission_repository import SubmissionRepository
from hrm_kpi.scoring.aggregation import pending_markings
from hrm_kpi.scoring.period_calendar import (
    current_friday,
    local_date,
    month_key_for,
    organization_now,
    previous_month_key,
    week_key_for,
)
from hrm_kpi.services import notification_templates
from hrm_kpi.services.lock_service import LockService
from hrm_kpi.services.monthly_compute_service import MonthlyComputeService
from hrm_kpi.services.weekly_compute_service import WeeklyComputeService

logger = structlog.get_logger(__name__)


class PeriodJobs:
    """Scheduler entry points; every job runs as an operator (normally SYSTEM)."""

    def __init__(
        self,
        lock_service: Optional[LockService] = None,
        weekly_compute: Optional[WeeklyComputeService] = None,
        monthly_compute: Optional[MonthlyComputeService] = None,
        months: Optional[MonthRepository] = None,
        assignments: Optional[AssignmentRepository] = None,
        submissions: Optional[SubmissionRepository] = None,
        outbox: Optional[NotificationOutboxRepository] = None,
        close_max_day: Optional[int] = None,
    ):
        self.lock_service = lock_service or LockService()
        self.weekly_compute = weekly_compute or WeeklyComputeService()
        self.monthly_compute = monthly_compute or MonthlyComputeService()
        self.months = months or MonthRepository()
        self.assignments = assignments or AssignmentRepository()
        self.submissions = submissions or SubmissionRepository()
        self.outbox = outbox or NotificationOutboxRepository()
        self.close_max_day = close_max_day or settings.MONTH_CLOSE_MAX_DAY

    def ensure_current_week(self, auth: AuthContext, now: Optional[datetime] = None) -> JobResult:
        """Create the current Friday's week (OPEN) and queue pending-marking reminders."""
        auth.require(*OPERATOR_ROLES)
        now = now or organization_now()
        week_key = week_key_for(current_friday(now))

        existed = self.lock_service.weeks.get_by_key(week_key) is not None
        week = self.lock_service.ensure_week(week_key)

        pending = pending_markings(
            self.submissions.list_for_week(week.id), self.assignments.list_active()
        )
        intents = [
            notification_templates.pending_marking(marker_id, week_key, count)
            for marker_id, count in pending.items()
        ]
        queued = self.outbox.enqueue_many(intents)

        action = "exists" if existed else "created"
        logger.info("job_ensure_week", week_key=week_key, action=action, reminders=queued)
        return JobResult(
            job="ensure_current_week",
            action=action,
            key=week_key,
            message=(
                f"Week {week_key} already exists with status {week.status.value}"
                if existed
                else f"Week {week_key} created successfully"
            ),
            notifications_queued=queued,
        )

    def compute_last_friday(
        self, auth: AuthContext, now: Optional[datetime] = None, force: bool = False
    ) -> JobResult:
        """Compute the most recent Friday's week; a LOCKED week is skipped unless force."""
        auth.require(*OPERATOR_ROLES)
        now = now or organization_now()
        week_key = week_key_for(current_friday(now))

        try:
            result = self.weekly_compute.compute_week(auth, week_key, force=force)
        except LockedStateError as e:
            logger.info("job_compute_week_skipped", week_key=week_key, reason=e.error_code)
            return JobResult(
                job="compute_last_friday",
                action="skipped",
                key=week_key,
                reason=e.error_code,
                message=e.message,
            )

        return JobResult(
            job="compute_last_friday",
            action="computed",
            key=week_key,
            message=f"Week {week_key} computed successfully",
            notifications_queued=result.notifications_queued,
            week=result,
        )

    def compute_month_if_ended(self, auth: AuthContext, now: Optional[datetime] = None) -> JobResult:
        """On the first days of a month, compute and lock the previous month."""
        auth.require(*OPERATOR_ROLES)
        now = now or organization_now()
        today = local_date(now)

        if today.day > self.close_max_day:
            return JobResult(
                job="compute_month_if_ended",
                action="skipped",
                reason="not_in_close_window",
                message=(
                    f"Skipped: Current day is {today.day}. "
                    f"Only runs on days 1-{self.close_max_day} of month."
                ),
            )

        month_key = previous_month_key(month_key_for(today))
        existing = self.months.get_by_key(month_key)
        if existing is not None and existing.is_locked:
            return JobResult(
                job="compute_month_if_ended",
                action="skipped",
                key=month_key,
                reason="already_locked",
                message=f"Month {month_key} is already locked.",
            )

        try:
            result = self.monthly_compute.compute_month(auth, month_key, lock=True)
        except LockedStateError as e:
            return JobResult(
                job="compute_month_if_ended",
                action="skipped",
                key=month_key,
                reason=e.error_code,
                message=e.message,
            )

        return JobResult(
            job="compute_month_if_ended",
            action="computed_and_locked",
            key=month_key,
            message=(
                f"Month {month_key} computed ({result.computed_subjects_count} subjects) "
                "and locked successfully"
            ),
            notifications_queued=result.notifications_queued,
            month=result,
        )
