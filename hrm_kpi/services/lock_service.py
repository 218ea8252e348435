"""
services/lock_service.py — Week and month OPEN/LOCKED state machine

    OPEN ──lock──► LOCKED ──force-unlock (SUPER_ADMIN)──► OPEN

Weeks and months are created lazily as OPEN. Every writer calls one of the
assert_*_writable guards before touching derived rows.
"""

from typing import Optional

import structlog

from hrm_kpi.core.exceptions import (
    AlreadyLocked,
    MonthLocked,
    MonthNotFound,
    WeekLocked,
    WeekNotFound,
)
from hrm_kpi.models.auth import OPERATOR_ROLES, AuthContext
from hrm_kpi.models.enumerations import HrmRole, PeriodStatus
from hrm_kpi.models.period import Month, Week
from hrm_kpi.repositories.period_repository import MonthRepository, WeekRepository
from hrm_kpi.scoring.period_calendar import month_date_range, parse_month_key, parse_week_key

logger = structlog.get_logger(__name__)


def assert_week_writable(week: Week, force: bool = False) -> None:
    """Raise WeekLocked when the week is LOCKED and force is not set."""
    if week.is_locked and not force:
        raise WeekLocked(week.week_key)


def assert_month_writable(month: Month, force: bool = False) -> None:
    """Raise MonthLocked when the month is LOCKED and force is not set."""
    if month.is_locked and not force:
        raise MonthLocked(month.month_key)


class LockService:
    """Creates periods on demand and moves them between OPEN and LOCKED."""

    def __init__(
        self,
        weeks: Optional[WeekRepository] = None,
        months: Optional[MonthRepository] = None,
    ):
        self.weeks = weeks or WeekRepository()
        self.months = months or MonthRepository()

    # ------------------------------------------------------------------
    # Lazy creation
    # ------------------------------------------------------------------

    def ensure_week(self, week_key: str) -> Week:
        friday = parse_week_key(week_key)
        week, created = self.weeks.ensure(week_key, friday)
        if created:
            logger.info("week_created", week_key=week_key)
        return week

    def ensure_month(self, month_key: str) -> Month:
        parse_month_key(month_key)
        rng = month_date_range(month_key)
        month, created = self.months.ensure(month_key, rng.start, rng.end)
        if created:
            logger.info("month_created", month_key=month_key)
        return month

    def get_week(self, week_key: str) -> Week:
        parse_week_key(week_key)
        week = self.weeks.get_by_key(week_key)
        if week is None:
            raise WeekNotFound(week_key)
        return week

    def get_month(self, month_key: str) -> Month:
        parse_month_key(month_key)
        month = self.months.get_by_key(month_key)
        if month is None:
            raise MonthNotFound(month_key)
        return month

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def lock_week(self, auth: AuthContext, week_key: str) -> Week:
        auth.require(*OPERATOR_ROLES)
        week = self.get_week(week_key)
        if week.is_locked:
            raise AlreadyLocked("Week", week_key)
        week = self.weeks.set_status(week_key, PeriodStatus.LOCKED)
        logger.info("week_locked", week_key=week_key, actor_id=auth.actor_id)
        return week

    def unlock_week(self, auth: AuthContext, week_key: str) -> Week:
        """Force-unlock; SUPER_ADMIN only. Unlocking an OPEN week is a no-op."""
        auth.require(HrmRole.SUPER_ADMIN)
        week = self.get_week(week_key)
        if not week.is_locked:
            return week
        week = self.weeks.set_status(week_key, PeriodStatus.OPEN)
        logger.warning("week_force_unlocked", week_key=week_key, actor_id=auth.actor_id)
        return week

    def lock_month(self, auth: AuthContext, month_key: str) -> Month:
        auth.require(*OPERATOR_ROLES)
        month = self.get_month(month_key)
        if month.is_locked:
            raise AlreadyLocked("Month", month_key)
        month = self.months.set_status(month_key, PeriodStatus.LOCKED)
        logger.info("month_locked", month_key=month_key, actor_id=auth.actor_id)
        return month

    def unlock_month(self, auth: AuthContext, month_key: str) -> Month:
        """Force-unlock; SUPER_ADMIN only. Unlocking an OPEN month is a no-op."""
        auth.require(HrmRole.SUPER_ADMIN)
        month = self.get_month(month_key)
        if not month.is_locked:
            return month
        month = self.months.set_status(month_key, PeriodStatus.OPEN)
        logger.warning("month_force_unlocked", month_key=month_key, actor_id=auth.actor_id)
        return month
