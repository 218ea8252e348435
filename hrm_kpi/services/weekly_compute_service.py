"""
services/weekly_compute_service.py — Weekly KPI compute

Rolls one week's submissions up into WeeklyResult and AdminCompliance rows
and queues ADMIN_MISSED_MARKING intents, all in a single transaction.
Safe to run any number of times while the week is OPEN.
"""

from typing import Optional

import structlog

from hrm_kpi.core.exceptions import WeekNotFound
from hrm_kpi.models.auth import OPERATOR_ROLES, AuthContext
from hrm_kpi.models.results import WeekComputeResult
from hrm_kpi.repositories.assignment_repository import AssignmentRepository
from hrm_kpi.repositories.notification_repository import NotificationOutboxRepository
from hrm_kpi.repositories.period_repository import WeekRepository
from hrm_kpi.repositories.result_repository import AdminComplianceRepository, WeeklyResultRepository
from hrm_kpi.repositories.submission_repository import SubmissionRepository
from hrm_kpi.scoring.aggregation import aggregate_week
from hrm_kpi.scoring.period_calendar import parse_week_key
from hrm_kpi.services import notification_templates
from hrm_kpi.services.lock_service import assert_week_writable
from hrm_kpi.services.period_lock import PeriodLockManager, week_lock_key

logger = structlog.get_logger(__name__)


class WeeklyComputeService:
    """Computes weekly results and marker compliance for one week."""

    def __init__(
        self,
        weeks: Optional[WeekRepository] = None,
        assignments: Optional[AssignmentRepository] = None,
        submissions: Optional[SubmissionRepository] = None,
        weekly_results: Optional[WeeklyResultRepository] = None,
        compliance: Optional[AdminComplianceRepository] = None,
        outbox: Optional[NotificationOutboxRepository] = None,
        locks: Optional[PeriodLockManager] = None,
    ):
        self.weeks = weeks or WeekRepository()
        self.assignments = assignments or AssignmentRepository()
        self.submissions = submissions or SubmissionRepository()
        self.weekly_results = weekly_results or WeeklyResultRepository()
        self.compliance = compliance or AdminComplianceRepository()
        self.outbox = outbox or NotificationOutboxRepository()
        self.locks = locks or PeriodLockManager()

    def compute_week(self, auth: AuthContext, week_key: str, force: bool = False) -> WeekComputeResult:
        """
        Compute one week.

        Args:
            auth: Caller; must be SUPER_ADMIN or SYSTEM
            week_key: Friday as YYYY-MM-DD
            force: Recompute even though the week is LOCKED

        Returns:
            WeekComputeResult with subject / admin / notification counts

        Raises:
            WeekNotFound: the week was never created
            WeekLocked: the week is LOCKED and force is not set
            DuplicateSubmission: two submissions share (week, subject, marker)
        """
        auth.require(*OPERATOR_ROLES)
        parse_week_key(week_key)

        with self.locks.hold(week_lock_key(week_key)):
            week = self.weeks.get_by_key(week_key)
            if week is None:
                raise WeekNotFound(week_key)
            assert_week_writable(week, force)

            submissions = self.submissions.list_for_week(week.id)
            assignments = self.assignments.list_active()
            aggregate = aggregate_week(week.id, submissions, assignments)

            intents = [
                notification_templates.missed_marking(c.admin_user_id, week_key, c.missed_count)
                for c in aggregate.markers_with_misses
            ]

            with self.weekly_results.transaction() as cursor:
                # Status may have flipped since the first read.
                current = self.weeks.get_by_key(week_key, cursor=cursor)
                assert_week_writable(current or week, force)

                self.weekly_results.replace_for_week(week.id, aggregate.weekly_results, cursor=cursor)
                self.compliance.replace_for_week(week.id, aggregate.compliance, cursor=cursor)
                queued = self.outbox.enqueue_many(intents, cursor=cursor)

        if force and week.is_locked:
            logger.warning("week_recomputed_while_locked", week_key=week_key, actor_id=auth.actor_id)

        logger.info(
            "week_computed",
            week_key=week_key,
            subjects=len(aggregate.weekly_results),
            admins=len(aggregate.compliance),
            notifications=queued,
            actor_id=auth.actor_id,
        )
        return WeekComputeResult(
            week_key=week_key,
            week_id=week.id,
            subjects_computed=len(aggregate.weekly_results),
            admins_computed=len(aggregate.compliance),
            notifications_queued=queued,
            forced=force and week.is_locked,
        )
