"""
Weeks Router - HRM KPI Engine
hrm_kpi/routers/weeks.py

Week lifecycle and weekly compute.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from hrm_kpi.config import settings
from hrm_kpi.core.dependencies import (
    get_admin_compliance_repository,
    get_auth_context,
    get_lock_service,
    get_weekly_compute_service,
    get_weekly_result_repository,
)
from hrm_kpi.models.api import ComputeWeekRequest, ErrorResponse, WeekDetailResponse
from hrm_kpi.models.auth import OPERATOR_ROLES, AuthContext
from hrm_kpi.models.enumerations import HrmRole
from hrm_kpi.models.period import Week
from hrm_kpi.models.results import WeekComputeResult
from hrm_kpi.repositories.result_repository import AdminComplianceRepository, WeeklyResultRepository
from hrm_kpi.scoring.period_calendar import week_number_in_month
from hrm_kpi.services.lock_service import LockService
from hrm_kpi.services.weekly_compute_service import WeeklyComputeService

router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/hrm/weeks", tags=["Weeks"])

_ERRORS = {
    401: {"model": ErrorResponse, "description": "Missing caller identity"},
    403: {"model": ErrorResponse, "description": "Role not permitted"},
    404: {"model": ErrorResponse, "description": "Week not found"},
    409: {"model": ErrorResponse, "description": "Week locked / already locked"},
    422: {"model": ErrorResponse, "description": "Malformed week key or duplicate submissions"},
}


@router.post(
    "/{week_key}/ensure",
    response_model=Week,
    status_code=status.HTTP_200_OK,
    responses=_ERRORS,
    summary="Create the week (OPEN) if it does not exist",
)
def ensure_week(
    week_key: str,
    auth: AuthContext = Depends(get_auth_context),
    locks: LockService = Depends(get_lock_service),
):
    auth.require(*OPERATOR_ROLES)
    return locks.ensure_week(week_key)


@router.get(
    "/{week_key}",
    response_model=WeekDetailResponse,
    responses=_ERRORS,
    summary="Week status with its weekly results and marker compliance",
)
def get_week(
    week_key: str,
    auth: AuthContext = Depends(get_auth_context),
    locks: LockService = Depends(get_lock_service),
    weekly_results: WeeklyResultRepository = Depends(get_weekly_result_repository),
    compliance: AdminComplianceRepository = Depends(get_admin_compliance_repository),
):
    auth.require(HrmRole.SUPER_ADMIN, HrmRole.ADMIN, HrmRole.SYSTEM)
    week = locks.get_week(week_key)
    return WeekDetailResponse(
        week_key=week.week_key,
        week_id=week.id,
        status=week.status,
        week_label=week_number_in_month(week.week_key),
        weekly_results=weekly_results.list_for_week(week.id),
        compliance=compliance.list_for_week(week.id),
    )


@router.post(
    "/{week_key}/compute",
    response_model=WeekComputeResult,
    responses=_ERRORS,
    summary="Compute weekly results and marker compliance",
)
def compute_week(
    week_key: str,
    body: Optional[ComputeWeekRequest] = None,
    auth: AuthContext = Depends(get_auth_context),
    service: WeeklyComputeService = Depends(get_weekly_compute_service),
):
    body = body or ComputeWeekRequest()
    return service.compute_week(auth, week_key, force=body.force)


@router.post("/{week_key}/lock", response_model=Week, responses=_ERRORS, summary="Lock a week")
def lock_week(
    week_key: str,
    auth: AuthContext = Depends(get_auth_context),
    locks: LockService = Depends(get_lock_service),
):
    return locks.lock_week(auth, week_key)


@router.post(
    "/{week_key}/unlock",
    response_model=Week,
    responses=_ERRORS,
    summary="Force-unlock a week (SUPER_ADMIN)",
)
def unlock_week(
    week_key: str,
    auth: AuthContext = Depends(get_auth_context),
    locks: LockService = Depends(get_lock_service),
):
    return locks.unlock_week(auth, week_key)
