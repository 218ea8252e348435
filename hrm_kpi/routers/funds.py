"""
Funds Router - HRM KPI Engine
hrm_kpi/routers/funds.py

Fine / bonus ledger marking and summary (SUPER_ADMIN).
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from hrm_kpi.config import settings
from hrm_kpi.core.dependencies import get_auth_context, get_fund_ledger_service
from hrm_kpi.models.api import ErrorResponse
from hrm_kpi.models.auth import AuthContext
from hrm_kpi.models.enumerations import FundEntryType, FundStatus
from hrm_kpi.models.fund import FundFilters, FundLedgerUpsert, FundLogEntry, FundSummary
from hrm_kpi.services.fund_ledger_service import FundLedgerService

router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/hrm/funds", tags=["Funds"])

_ERRORS = {
    401: {"model": ErrorResponse, "description": "Missing caller identity"},
    403: {"model": ErrorResponse, "description": "SUPER_ADMIN only"},
    404: {"model": ErrorResponse, "description": "Monthly result not found"},
    409: {"model": ErrorResponse, "description": "Status transition not allowed"},
    422: {"model": ErrorResponse, "description": "Missing expected amount / invalid amount"},
}


def get_fund_filters(
    month_key: Optional[str] = Query(default=None, pattern=r"^\d{4}-\d{2}$"),
    entry_type: Optional[FundEntryType] = Query(default=None),
    status: Optional[FundStatus] = Query(default=None),
    subject_user_id: Optional[str] = Query(default=None),
) -> FundFilters:
    return FundFilters(
        month_key=month_key, entry_type=entry_type, status=status, subject_user_id=subject_user_id
    )


@router.put(
    "/entries",
    response_model=FundLogEntry,
    responses=_ERRORS,
    summary="Mark a fine collected / bonus paid, or revert to DUE",
)
def upsert_ledger_entry(
    body: FundLedgerUpsert,
    auth: AuthContext = Depends(get_auth_context),
    service: FundLedgerService = Depends(get_fund_ledger_service),
):
    return service.upsert_ledger_entry(
        auth,
        monthly_result_id=body.monthly_result_id,
        entry_type=body.entry_type,
        status=body.status,
        actual_amount=body.actual_amount,
        note=body.note,
        force=body.force,
    )


@router.get("/entries", response_model=List[FundLogEntry], responses=_ERRORS, summary="List ledger entries")
def list_ledger_entries(
    filters: FundFilters = Depends(get_fund_filters),
    auth: AuthContext = Depends(get_auth_context),
    service: FundLedgerService = Depends(get_fund_ledger_service),
):
    return service.list_entries(auth, filters)


@router.get("/summary", response_model=FundSummary, responses=_ERRORS, summary="Fund totals and balance")
def fund_summary(
    filters: FundFilters = Depends(get_fund_filters),
    auth: AuthContext = Depends(get_auth_context),
    service: FundLedgerService = Depends(get_fund_ledger_service),
):
    return service.summarize(auth, filters)
