"""
Dependencies - HRM KPI Engine
hrm_kpi/core/dependencies.py

FastAPI dependency injection for repositories, services and the caller context.
"""

import secrets
from functools import lru_cache
from typing import Optional

from fastapi import Header

from hrm_kpi.config import settings
from hrm_kpi.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CronSecretNotConfigured,
    KpiValidationError,
)
from hrm_kpi.models.auth import SYSTEM_CONTEXT, AuthContext
from hrm_kpi.models.enumerations import HrmRole
from hrm_kpi.repositories.assignment_repository import AssignmentRepository
from hrm_kpi.repositories.fund_log_repository import FundLogRepository
from hrm_kpi.repositories.notification_repository import NotificationOutboxRepository
from hrm_kpi.repositories.period_repository import MonthRepository, WeekRepository
from hrm_kpi.repositories.result_repository import (
    AdminComplianceRepository,
    MonthlyResultRepository,
    SubjectMonthStateRepository,
    WeeklyResultRepository,
)
from hrm_kpi.repositories.submission_repository import SubmissionRepository
from hrm_kpi.services.fund_ledger_service import FundLedgerService
from hrm_kpi.services.lock_service import LockService
from hrm_kpi.services.monthly_compute_service import MonthlyComputeService
from hrm_kpi.services.notification_dispatcher import NotificationDispatcher
from hrm_kpi.services.period_jobs import PeriodJobs
from hrm_kpi.services.period_lock import PeriodLockManager
from hrm_kpi.services.weekly_compute_service import WeeklyComputeService


# -----------------------------------------------------------------------------
# Repositories
# -----------------------------------------------------------------------------

@lru_cache()
def get_week_repository() -> WeekRepository:
    """Get cached WeekRepository instance."""
    return WeekRepository()


@lru_cache()
def get_month_repository() -> MonthRepository:
    """Get cached MonthRepository instance."""
    return MonthRepository()


@lru_cache()
def get_assignment_repository() -> AssignmentRepository:
    return AssignmentRepository()


@lru_cache()
def get_submission_repository() -> SubmissionRepository:
    return SubmissionRepository()


@lru_cache()
def get_weekly_result_repository() -> WeeklyResultRepository:
    return WeeklyResultRepository()


@lru_cache()
def get_admin_compliance_repository() -> AdminComplianceRepository:
    return AdminComplianceRepository()


@lru_cache()
def get_monthly_result_repository() -> MonthlyResultRepository:
    return MonthlyResultRepository()


@lru_cache()
def get_subject_month_state_repository() -> SubjectMonthStateRepository:
    return SubjectMonthStateRepository()


@lru_cache()
def get_fund_log_repository() -> FundLogRepository:
    return FundLogRepository()


@lru_cache()
def get_notification_outbox_repository() -> NotificationOutboxRepository:
    return NotificationOutboxRepository()


# -----------------------------------------------------------------------------
# Services
# -----------------------------------------------------------------------------

@lru_cache()
def get_period_lock_manager() -> PeriodLockManager:
    return PeriodLockManager()


@lru_cache()
def get_lock_service() -> LockService:
    """Get cached LockService instance."""
    return LockService(weeks=get_week_repository(), months=get_month_repository())


@lru_cache()
def get_weekly_compute_service() -> WeeklyComputeService:
    return WeeklyComputeService(
        weeks=get_week_repository(),
        assignments=get_assignment_repository(),
        submissions=get_submission_repository(),
        weekly_results=get_weekly_result_repository(),
        compliance=get_admin_compliance_repository(),
        outbox=get_notification_outbox_repository(),
        locks=get_period_lock_manager(),
    )


@lru_cache()
def get_monthly_compute_service() -> MonthlyComputeService:
    return MonthlyComputeService(
        months=get_month_repository(),
        weeks=get_week_repository(),
        weekly_results=get_weekly_result_repository(),
        monthly_results=get_monthly_result_repository(),
        states=get_subject_month_state_repository(),
        outbox=get_notification_outbox_repository(),
        lock_service=get_lock_service(),
        weekly_compute=get_weekly_compute_service(),
        locks=get_period_lock_manager(),
    )


@lru_cache()
def get_fund_ledger_service() -> FundLedgerService:
    return FundLedgerService(
        monthly_results=get_monthly_result_repository(),
        months=get_month_repository(),
        fund_logs=get_fund_log_repository(),
    )


@lru_cache()
def get_notification_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(outbox=get_notification_outbox_repository())


@lru_cache()
def get_period_jobs() -> PeriodJobs:
    return PeriodJobs(
        lock_service=get_lock_service(),
        weekly_compute=get_weekly_compute_service(),
        monthly_compute=get_monthly_compute_service(),
        months=get_month_repository(),
        assignments=get_assignment_repository(),
        submissions=get_submission_repository(),
        outbox=get_notification_outbox_repository(),
    )


# -----------------------------------------------------------------------------
# Caller context
# -----------------------------------------------------------------------------

def _cron_secret_matches(provided: str) -> bool:
    if settings.HRM_CRON_SECRET is None:
        raise CronSecretNotConfigured()
    return secrets.compare_digest(provided, settings.HRM_CRON_SECRET.get_secret_value())


def get_cron_context(
    x_cron_secret: Optional[str] = Header(default=None, alias="X-CRON-SECRET"),
) -> AuthContext:
    """Scheduler endpoints: a valid X-CRON-SECRET runs the call as SYSTEM."""
    if settings.HRM_CRON_SECRET is None:
        raise CronSecretNotConfigured()
    if not x_cron_secret:
        raise AuthenticationError("Missing X-CRON-SECRET header")
    if not _cron_secret_matches(x_cron_secret):
        raise AuthorizationError("Invalid cron secret")
    return SYSTEM_CONTEXT


def get_auth_context(
    x_cron_secret: Optional[str] = Header(default=None, alias="X-CRON-SECRET"),
    x_actor_id: Optional[str] = Header(default=None, alias="X-Actor-Id"),
    x_actor_role: Optional[str] = Header(default=None, alias="X-Actor-Role"),
) -> AuthContext:
    """
    Caller identity as asserted by the authenticating gateway in front of the engine.

    A valid cron secret maps to SYSTEM; otherwise X-Actor-Id and X-Actor-Role are required.
    """
    if x_cron_secret:
        if not _cron_secret_matches(x_cron_secret):
            raise AuthorizationError("Invalid cron secret")
        return SYSTEM_CONTEXT

    if not x_actor_id or not x_actor_role:
        raise AuthenticationError("Missing X-Actor-Id / X-Actor-Role headers")

    try:
        role = HrmRole(x_actor_role.upper())
    except ValueError:
        raise KpiValidationError(
            f"Unknown role '{x_actor_role}'",
            {"allowed": [r.value for r in HrmRole if r != HrmRole.SYSTEM]},
        )
    if role == HrmRole.SYSTEM:
        raise AuthorizationError("SYSTEM role requires the cron secret")
    return AuthContext(actor_id=x_actor_id, role=role)
