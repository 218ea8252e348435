"""
Cron Router - HRM KPI Engine
hrm_kpi/routers/cron.py

Scheduler entry points. Every route requires the X-CRON-SECRET header and
runs as SYSTEM. Idempotent: safe to call multiple times.

Suggested schedule (organization time):
    ensure-week              daily 00:01
    compute-last-friday      Friday 23:30
    compute-month-if-ended   daily 01:00
    dispatch-notifications   every few minutes
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from hrm_kpi.config import settings
from hrm_kpi.core.dependencies import get_cron_context, get_notification_dispatcher, get_period_jobs
from hrm_kpi.models.api import ErrorResponse
from hrm_kpi.models.auth import AuthContext
from hrm_kpi.models.notification import DispatchResult
from hrm_kpi.models.results import JobResult
from hrm_kpi.services.notification_dispatcher import NotificationDispatcher
from hrm_kpi.services.period_jobs import PeriodJobs

router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/hrm/cron", tags=["Cron"])

_ERRORS = {
    401: {"model": ErrorResponse, "description": "Missing X-CRON-SECRET header"},
    403: {"model": ErrorResponse, "description": "Invalid cron secret"},
    404: {"model": ErrorResponse, "description": "Week not found (run ensure-week first)"},
    412: {"model": ErrorResponse, "description": "No weekly data for the month"},
    500: {"model": ErrorResponse, "description": "Cron secret not configured"},
}


@router.post("/ensure-week", response_model=JobResult, responses=_ERRORS)
def ensure_week(
    auth: AuthContext = Depends(get_cron_context),
    jobs: PeriodJobs = Depends(get_period_jobs),
):
    return jobs.ensure_current_week(auth)


@router.post("/compute-last-friday", response_model=JobResult, responses=_ERRORS)
def compute_last_friday(
    force: bool = Query(default=False),
    auth: AuthContext = Depends(get_cron_context),
    jobs: PeriodJobs = Depends(get_period_jobs),
):
    return jobs.compute_last_friday(auth, force=force)


@router.post("/compute-month-if-ended", response_model=JobResult, responses=_ERRORS)
def compute_month_if_ended(
    auth: AuthContext = Depends(get_cron_context),
    jobs: PeriodJobs = Depends(get_period_jobs),
):
    return jobs.compute_month_if_ended(auth)


@router.post("/dispatch-notifications", response_model=DispatchResult, responses=_ERRORS)
def dispatch_notifications(
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    auth: AuthContext = Depends(get_cron_context),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    return dispatcher.dispatch_pending(limit=limit)
