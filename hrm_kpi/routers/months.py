"""
Months Router - HRM KPI Engine
hrm_kpi/routers/months.py

Monthly compute, month lock state and monthly results with Redis caching.
"""

from typing import List, Optional

import redis
import structlog
from fastapi import APIRouter, Depends

from hrm_kpi.config import settings
from hrm_kpi.core.dependencies import get_auth_context, get_lock_service, get_monthly_compute_service
from hrm_kpi.models.api import ComputeMonthRequest, ErrorResponse
from hrm_kpi.models.auth import AuthContext
from hrm_kpi.models.enumerations import HrmRole
from hrm_kpi.models.period import Month
from hrm_kpi.models.results import MonthComputeResult, MonthlyResult
from hrm_kpi.services.cache import TTL_MONTHLY_RESULTS, get_cache, monthly_results_key
from hrm_kpi.services.lock_service import LockService
from hrm_kpi.services.monthly_compute_service import MonthlyComputeService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/hrm/months", tags=["Months"])

_ERRORS = {
    401: {"model": ErrorResponse, "description": "Missing caller identity"},
    403: {"model": ErrorResponse, "description": "Role not permitted"},
    404: {"model": ErrorResponse, "description": "Month not found"},
    409: {"model": ErrorResponse, "description": "Month locked / already locked / compute in progress"},
    412: {"model": ErrorResponse, "description": "No Fridays or no weekly data for the month"},
    422: {"model": ErrorResponse, "description": "Malformed month key"},
}


@router.post(
    "/{month_key}/compute",
    response_model=MonthComputeResult,
    responses=_ERRORS,
    summary="Compute monthly results (optionally refresh weeks first and lock after)",
)
def compute_month(
    month_key: str,
    body: Optional[ComputeMonthRequest] = None,
    auth: AuthContext = Depends(get_auth_context),
    service: MonthlyComputeService = Depends(get_monthly_compute_service),
):
    body = body or ComputeMonthRequest()
    return service.compute_month(
        auth, month_key, force=body.force, lock=body.lock, refresh_weeks=body.refresh_weeks
    )


@router.get(
    "/{month_key}/results",
    response_model=List[MonthlyResult],
    responses=_ERRORS,
    summary="Monthly results (employees see only their own)",
)
def list_monthly_results(
    month_key: str,
    auth: AuthContext = Depends(get_auth_context),
    service: MonthlyComputeService = Depends(get_monthly_compute_service),
):
    if auth.role == HrmRole.EMPLOYEE:
        return service.list_results(auth, month_key)

    cache = get_cache()
    key = monthly_results_key(month_key)
    if cache:
        try:
            cached = cache.get_list(key, MonthlyResult)
            if cached is not None:
                return cached
        except redis.RedisError as e:
            logger.warning("monthly_results_cache_read_failed", month_key=month_key, error=str(e))

    results = service.list_results(auth, month_key)

    if cache:
        try:
            cache.set_list(key, results, TTL_MONTHLY_RESULTS)
        except redis.RedisError as e:
            logger.warning("monthly_results_cache_write_failed", month_key=month_key, error=str(e))
    return results


@router.post("/{month_key}/lock", response_model=Month, responses=_ERRORS, summary="Lock a month")
def lock_month(
    month_key: str,
    auth: AuthContext = Depends(get_auth_context),
    locks: LockService = Depends(get_lock_service),
):
    return locks.lock_month(auth, month_key)


@router.post(
    "/{month_key}/unlock",
    response_model=Month,
    responses=_ERRORS,
    summary="Force-unlock a month (SUPER_ADMIN)",
)
def unlock_month(
    month_key: str,
    auth: AuthContext = Depends(get_auth_context),
    locks: LockService = Depends(get_lock_service),
):
    return locks.unlock_month(auth, month_key)
