# tests/conftest.py

"""
Pytest Fixtures - Shared engine wiring for service and API tests

Every service is built over the in-memory fakes in tests/fakes.py, so no test
needs Snowflake or Redis.

CALENDAR REFERENCE (all Fridays, Asia/Dhaka):
- 2025-05: 05-02, 05-09, 05-16, 05-23, 05-30   (5 weeks)
- 2025-06: 06-06, 06-13, 06-20, 06-27          (4 weeks)
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

from fakes import (
    CRON_SECRET,
    FIXED_NOW,
    actor_headers,
    FakeAdminComplianceRepository,
    FakeAssignmentRepository,
    FakeCache,
    FakeFundLogRepository,
    FakeMonthRepository,
    FakeMonthlyResultRepository,
    FakeNotificationOutboxRepository,
    FakeSubjectMonthStateRepository,
    FakeSubmissionRepository,
    FakeWeekRepository,
    FakeWeeklyResultRepository,
    InMemoryStore,
)
from hrm_kpi.config import settings
from hrm_kpi.core import dependencies
from hrm_kpi.main import app
from hrm_kpi.models.auth import AuthContext
from hrm_kpi.models.enumerations import HrmRole
from hrm_kpi.scoring.tiering import TieringPolicy
from hrm_kpi.services.fund_ledger_service import FundLedgerService
from hrm_kpi.services.lock_service import LockService
from hrm_kpi.services.monthly_compute_service import MonthlyComputeService
from hrm_kpi.services.notification_dispatcher import NotificationDispatcher
from hrm_kpi.services.period_jobs import PeriodJobs
from hrm_kpi.services.period_lock import PeriodLockManager
from hrm_kpi.services.weekly_compute_service import WeeklyComputeService

# =============================================================================
# CALLERS
# =============================================================================

@pytest.fixture
def super_admin():
    return AuthContext(actor_id="sa-1", role=HrmRole.SUPER_ADMIN)


@pytest.fixture
def system():
    return AuthContext(actor_id="system", role=HrmRole.SYSTEM)


@pytest.fixture
def admin():
    return AuthContext(actor_id="M1", role=HrmRole.ADMIN)


@pytest.fixture
def employee():
    return AuthContext(actor_id="S1", role=HrmRole.EMPLOYEE)


# =============================================================================
# STORAGE
# =============================================================================

@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def repos(store):
    return SimpleNamespace(
        weeks=FakeWeekRepository(store),
        months=FakeMonthRepository(store),
        assignments=FakeAssignmentRepository(store),
        submissions=FakeSubmissionRepository(store),
        weekly_results=FakeWeeklyResultRepository(store),
        compliance=FakeAdminComplianceRepository(store),
        monthly_results=FakeMonthlyResultRepository(store),
        states=FakeSubjectMonthStateRepository(store),
        fund_logs=FakeFundLogRepository(store),
        outbox=FakeNotificationOutboxRepository(store),
    )


@pytest.fixture
def fake_cache():
    return FakeCache()


@pytest.fixture
def period_locks():
    """In-process locks only; a held key fails fast."""
    return PeriodLockManager(cache_provider=lambda: None, timeout_seconds=5, wait_seconds=0.2)


# =============================================================================
# SERVICES
# =============================================================================

@pytest.fixture
def lock_service(repos):
    return LockService(weeks=repos.weeks, months=repos.months)


@pytest.fixture
def weekly_service(repos, period_locks):
    return WeeklyComputeService(
        weeks=repos.weeks,
        assignments=repos.assignments,
        submissions=repos.submissions,
        weekly_results=repos.weekly_results,
        compliance=repos.compliance,
        outbox=repos.outbox,
        locks=period_locks,
    )


@pytest.fixture
def policy():
    return TieringPolicy()


@pytest.fixture
def monthly_service(repos, lock_service, weekly_service, period_locks, policy, fake_cache):
    return MonthlyComputeService(
        months=repos.months,
        weeks=repos.weeks,
        weekly_results=repos.weekly_results,
        monthly_results=repos.monthly_results,
        states=repos.states,
        outbox=repos.outbox,
        lock_service=lock_service,
        weekly_compute=weekly_service,
        locks=period_locks,
        policy=policy,
        cache_provider=lambda: fake_cache,
    )


@pytest.fixture
def fund_service(repos, fake_cache):
    return FundLedgerService(
        monthly_results=repos.monthly_results,
        months=repos.months,
        fund_logs=repos.fund_logs,
        cache_provider=lambda: fake_cache,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def dispatcher(repos, notifier):
    return NotificationDispatcher(outbox=repos.outbox, notifier=notifier, max_attempts=3)


@pytest.fixture
def period_jobs(repos, lock_service, weekly_service, monthly_service):
    return PeriodJobs(
        lock_service=lock_service,
        weekly_compute=weekly_service,
        monthly_compute=monthly_service,
        months=repos.months,
        assignments=repos.assignments,
        submissions=repos.submissions,
        outbox=repos.outbox,
        close_max_day=2,
    )


# =============================================================================
# SEED HELPERS
# =============================================================================

@pytest.fixture
def seed_month_scores(store):
    """
    Seed weekly results for a month.

    Usage: seed_month_scores(JUNE_FRIDAYS, {"S1": [80, 85, 90, 75]})
    A subject with fewer scores than Fridays is missing from the trailing weeks.
    """
    def _seed(fridays, scores_by_subject):
        weeks = [store.weeks.get(k) or store.add_week(k) for k in fridays]
        for subject_id, scores in scores_by_subject.items():
            for week, score in zip(weeks, scores):
                store.add_weekly_result(week, subject_id, Decimal(str(score)))
        return weeks
    return _seed


# =============================================================================
# FASTAPI TEST CLIENT FIXTURE
# =============================================================================

@pytest.fixture
def client(
    monkeypatch,
    repos,
    lock_service,
    weekly_service,
    monthly_service,
    fund_service,
    dispatcher,
    period_jobs,
):
    """TestClient with every engine dependency swapped for the in-memory wiring."""
    monkeypatch.setattr(settings, "HRM_CRON_SECRET", SecretStr(CRON_SECRET))
    monkeypatch.setattr("hrm_kpi.routers.months.get_cache", lambda: None)

    overrides = {
        dependencies.get_lock_service: lambda: lock_service,
        dependencies.get_weekly_compute_service: lambda: weekly_service,
        dependencies.get_monthly_compute_service: lambda: monthly_service,
        dependencies.get_fund_ledger_service: lambda: fund_service,
        dependencies.get_notification_dispatcher: lambda: dispatcher,
        dependencies.get_period_jobs: lambda: period_jobs,
        dependencies.get_weekly_result_repository: lambda: repos.weekly_results,
        dependencies.get_admin_compliance_repository: lambda: repos.compliance,
    }
    app.dependency_overrides.update(overrides)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sa_headers():
    return actor_headers("sa-1", "SUPER_ADMIN")


@pytest.fixture
def cron_headers():
    return {"X-CRON-SECRET": CRON_SECRET}
