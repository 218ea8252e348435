"""
services/monthly_compute_service.py — Monthly KPI compute

Rolls a month's weekly results up per subject, classifies each subject with
the TieringPolicy, and writes MonthlyResult rows plus MONTH_RESULT_READY
intents. A failure for one subject is logged and counted as skipped; the
rest of the month still computes.

Previous-tier baseline per subject (SubjectMonthState):
    no state                     previous tier None, counters 0
    last_month_key <  month_key  current state is the baseline, state advances
    last_month_key == month_key  recompute: the prior_* snapshot is the baseline
    last_month_key >  month_key  back-fill: the latest MonthlyResult before month_key
                                 is the baseline and the state is left untouched
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from hrm_kpi.core.exceptions import (
    KpiEngineError,
    NoFridaysInMonth,
    RepositoryException,
    WeeklyDataMissing,
)
from hrm_kpi.models.auth import OPERATOR_ROLES, AuthContext
from hrm_kpi.models.enumerations import HrmRole, PeriodStatus, Tier
from hrm_kpi.models.period import Month
from hrm_kpi.models.results import MonthComputeResult, MonthlyResult, SubjectFailure, SubjectMonthState
from hrm_kpi.repositories.notification_repository import NotificationOutboxRepository
from hrm_kpi.repositories.period_repository import MonthRepository, WeekRepository
from hrm_kpi.repositories.result_repository import (
    MonthlyResultRepository,
    SubjectMonthStateRepository,
    WeeklyResultRepository,
)
from hrm_kpi.scoring.aggregation import SubjectMonthScore, aggregate_month
from hrm_kpi.scoring.period_calendar import fridays_in_month, parse_month_key
from hrm_kpi.scoring.tiering import TieringPolicy
from hrm_kpi.services import notification_templates
from hrm_kpi.services.cache import get_cache, invalidate_monthly_results, invalidate_fund_summaries
from hrm_kpi.services.lock_service import LockService, assert_month_writable
from hrm_kpi.services.period_lock import PeriodLockManager, month_lock_key
from hrm_kpi.services.weekly_compute_service import WeeklyComputeService

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _Baseline:
    month_key: Optional[str]
    tier: Optional[Tier]
    improvement_months: int
    fine_months: int
    advance_state: bool


class MonthlyComputeService:
    """Computes (and optionally locks) one month."""

    def __init__(
        self,
        months: Optional[MonthRepository] = None,
        weeks: Optional[WeekRepository] = None,
        weekly_results: Optional[WeeklyResultRepository] = None,
        monthly_results: Optional[MonthlyResultRepository] = None,
        states: Optional[SubjectMonthStateRepository] = None,
        outbox: Optional[NotificationOutboxRepository] = None,
        lock_service: Optional[LockService] = None,
        weekly_compute: Optional[WeeklyComputeService] = None,
        locks: Optional[PeriodLockManager] = None,
        policy: Optional[TieringPolicy] = None,
        cache_provider=get_cache,
    ):
        self.months = months or MonthRepository()
        self.weeks = weeks or WeekRepository()
        self.weekly_results = weekly_results or WeeklyResultRepository()
        self.monthly_results = monthly_results or MonthlyResultRepository()
        self.states = states or SubjectMonthStateRepository()
        self.outbox = outbox or NotificationOutboxRepository()
        self.lock_service = lock_service or LockService(weeks=self.weeks, months=self.months)
        self.weekly_compute = weekly_compute or WeeklyComputeService(weeks=self.weeks, outbox=self.outbox)
        self.locks = locks or PeriodLockManager()
        self.policy = policy or TieringPolicy.from_settings()
        self._cache_provider = cache_provider

    def compute_month(
        self,
        auth: AuthContext,
        month_key: str,
        force: bool = False,
        lock: bool = False,
        refresh_weeks: bool = False,
        now: Optional[datetime] = None,
    ) -> MonthComputeResult:
        """
        Compute every subject's monthly result.

        Args:
            auth: Caller; must be SUPER_ADMIN or SYSTEM
            month_key: YYYY-MM
            force: Recompute a LOCKED month
            lock: Lock the month after computing, under the same advisory lock
            refresh_weeks: Recompute every OPEN week of the month first
            now: Timestamp recorded as computed_at on changed rows

        Returns:
            MonthComputeResult

        Raises:
            MonthLocked: month is LOCKED and force is not set
            NoFridaysInMonth: month has no Fridays
            WeeklyDataMissing: no weeks or no weekly results for the month
        """
        auth.require(*OPERATOR_ROLES)
        parse_month_key(month_key)
        now = now or datetime.now(timezone.utc)

        with self.locks.hold(month_lock_key(month_key)):
            month = self.lock_service.ensure_month(month_key)
            assert_month_writable(month, force)
            was_locked = month.is_locked

            friday_keys = fridays_in_month(month_key)
            if not friday_keys:
                raise NoFridaysInMonth(month_key)
            expected_weeks_count = len(friday_keys)

            weeks_refreshed = 0
            if refresh_weeks:
                for week in self.weeks.list_by_keys(friday_keys):
                    if week.is_locked:
                        continue
                    self.weekly_compute.compute_week(auth, week.week_key)
                    weeks_refreshed += 1

            weeks = self.weeks.list_by_keys(friday_keys)
            if not weeks:
                raise WeeklyDataMissing(month_key, friday_keys)

            weekly_rows = self.weekly_results.list_for_weeks([w.id for w in weeks])
            if not weekly_rows:
                raise WeeklyDataMissing(month_key, friday_keys)

            computed = 0
            queued = 0
            failures: List[SubjectFailure] = []
            for score in aggregate_month(weekly_rows):
                try:
                    queued += self._compute_subject(month, score, expected_weeks_count, now)
                    computed += 1
                except (KpiEngineError, RepositoryException, ValueError) as e:
                    failures.append(SubjectFailure(subject_user_id=score.subject_user_id, error=str(e)))
                    logger.error(
                        "subject_month_failed",
                        month_key=month_key,
                        subject_user_id=score.subject_user_id,
                        error=str(e),
                    )

            locked = was_locked
            if lock and not was_locked:
                self.months.set_status(month_key, PeriodStatus.LOCKED)
                locked = True
                logger.info("month_locked", month_key=month_key, actor_id=auth.actor_id)

        cache = self._cache_provider()
        invalidate_monthly_results(cache, month_key)
        invalidate_fund_summaries(cache)

        if force and was_locked:
            logger.warning("month_recomputed_while_locked", month_key=month_key, actor_id=auth.actor_id)

        logger.info(
            "month_computed",
            month_key=month_key,
            expected_weeks=expected_weeks_count,
            weeks_in_month=len(weeks),
            computed=computed,
            skipped=len(failures),
            notifications=queued,
            locked=locked,
        )
        return MonthComputeResult(
            month_key=month_key,
            month_id=month.id,
            expected_weeks_count=expected_weeks_count,
            weeks_in_month=len(weeks),
            computed_subjects_count=computed,
            skipped_subjects_count=len(failures),
            failures=failures,
            weeks_refreshed=weeks_refreshed,
            notifications_queued=queued,
            locked=locked,
            forced=force and was_locked,
        )

    def list_results(self, auth: AuthContext, month_key: str) -> List[MonthlyResult]:
        """Monthly results for a month; employees only see their own row."""
        month = self.lock_service.get_month(month_key)
        if auth.role == HrmRole.EMPLOYEE:
            return [
                r for r in self.monthly_results.list_for_month(month.id)
                if r.subject_user_id == auth.actor_id
            ]
        auth.require(HrmRole.SUPER_ADMIN, HrmRole.ADMIN, HrmRole.SYSTEM)
        return self.monthly_results.list_for_month(month.id)

    # ------------------------------------------------------------------
    # Per subject
    # ------------------------------------------------------------------

    def _compute_subject(
        self,
        month: Month,
        score: SubjectMonthScore,
        expected_weeks_count: int,
        now: datetime,
    ) -> int:
        subject_id = score.subject_user_id
        state = self.states.get(subject_id)
        baseline = self._baseline(state, month.month_key, subject_id)

        decision = self.policy.classify(score.monthly_score, baseline.tier, baseline.fine_months)

        existing = self.monthly_results.get(month.id, subject_id)
        candidate = MonthlyResult(
            month_id=month.id,
            subject_user_id=subject_id,
            monthly_score=score.monthly_score,
            tier=decision.tier,
            action_type=decision.action_type,
            base_fine=decision.base_fine,
            month_fine_count=decision.month_fine_count,
            final_fine=decision.final_fine,
            gift_type=decision.gift_type,
            gift_amount=existing.gift_amount if existing else None,
            weeks_count_used=score.weeks_count_used,
            expected_weeks_count=expected_weeks_count,
            is_complete_month=score.weeks_count_used == expected_weeks_count,
            computed_at=now,
        )
        if existing is not None:
            candidate.id = existing.id
            if existing.same_outcome(candidate):
                candidate.computed_at = existing.computed_at

        intent = notification_templates.month_result_ready(
            subject_id, month.month_key, decision.tier, score.monthly_score
        )
        with self.monthly_results.transaction() as cursor:
            self.monthly_results.upsert(candidate, cursor=cursor)
            self.outbox.enqueue_many([intent], cursor=cursor)

        if baseline.advance_state:
            self.states.upsert(
                SubjectMonthState(
                    subject_user_id=subject_id,
                    last_month_key=month.month_key,
                    last_month_tier=decision.tier,
                    consecutive_improvement_months=self.policy.update_consecutive_improvement_months(
                        decision.tier, baseline.improvement_months
                    ),
                    consecutive_fine_months=decision.month_fine_count,
                    prior_month_key=baseline.month_key,
                    prior_month_tier=baseline.tier,
                    prior_consecutive_improvement_months=baseline.improvement_months,
                    prior_consecutive_fine_months=baseline.fine_months,
                )
            )

        logger.debug(
            "subject_month_computed",
            month_key=month.month_key,
            subject_user_id=subject_id,
            monthly_score=str(score.monthly_score),
            tier=decision.tier.value,
            final_fine=str(decision.final_fine),
        )
        return 1

    def _baseline(self, state: Optional[SubjectMonthState], month_key: str, subject_id: str) -> _Baseline:
        if state is None or state.last_month_key is None:
            return _Baseline(None, None, 0, 0, advance_state=True)

        if state.last_month_key == month_key:
            return _Baseline(
                state.prior_month_key,
                state.prior_month_tier,
                state.prior_consecutive_improvement_months,
                state.prior_consecutive_fine_months,
                advance_state=True,
            )

        if state.last_month_key < month_key:
            return _Baseline(
                state.last_month_key,
                state.last_month_tier,
                state.consecutive_improvement_months,
                state.consecutive_fine_months,
                advance_state=True,
            )

        # Back-fill: the last month computed before this one, gaps included
        latest = self.monthly_results.latest_before(month_key, subject_id)
        if latest is None:
            return _Baseline(None, None, 0, 0, advance_state=False)
        prev_key, previous = latest
        return _Baseline(prev_key, previous.tier, 0, previous.month_fine_count, advance_state=False)
