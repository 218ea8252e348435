"""
services/fund_ledger_service.py — Operator-facing fund ledger

Marks monthly fines collected and bonuses paid (or reverts them to DUE) and
summarizes the ledger. The status machine itself lives in
scoring/fund_ledger.py; this layer loads the monthly result, decides the
expected amount, persists the entry and keeps the summary cache fresh.

Expected amount:
    FINE   monthly final_fine   (must be > 0)
    BONUS  monthly gift_amount  (0 when unset)

On a LOCKED month an existing entry keeps its expected amount unless force.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

import redis
import structlog

from hrm_kpi.core.exceptions import MissingExpectedAmount, MonthNotFound, MonthlyResultNotFound
from hrm_kpi.models.auth import AuthContext
from hrm_kpi.models.enumerations import FundEntryType, FundStatus, HrmRole
from hrm_kpi.models.fund import FundFilters, FundLogEntry, FundSummary
from hrm_kpi.repositories.fund_log_repository import FundLogRepository
from hrm_kpi.repositories.period_repository import MonthRepository
from hrm_kpi.repositories.result_repository import MonthlyResultRepository
from hrm_kpi.scoring.fund_ledger import apply_transition, summarize_entries
from hrm_kpi.services.cache import (
    TTL_FUND_SUMMARY,
    fund_summary_key,
    get_cache,
    invalidate_fund_summaries,
)
from hrm_kpi.services.redis_cache import RedisCache

logger = structlog.get_logger(__name__)


class FundLedgerService:
    """SUPER_ADMIN operations on the fine/bonus ledger."""

    def __init__(
        self,
        monthly_results: Optional[MonthlyResultRepository] = None,
        months: Optional[MonthRepository] = None,
        fund_logs: Optional[FundLogRepository] = None,
        cache_provider: Callable[[], Optional[RedisCache]] = get_cache,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.monthly_results = monthly_results or MonthlyResultRepository()
        self.months = months or MonthRepository()
        self.fund_logs = fund_logs or FundLogRepository()
        self._cache_provider = cache_provider
        self._clock = clock

    def upsert_ledger_entry(
        self,
        auth: AuthContext,
        monthly_result_id: str,
        entry_type: FundEntryType,
        status: FundStatus,
        actual_amount: Optional[Decimal] = None,
        note: Optional[str] = None,
        force: bool = False,
    ) -> FundLogEntry:
        """
        Create or move a ledger entry.

        Args:
            auth: Caller; SUPER_ADMIN only
            monthly_result_id: Monthly result the entry belongs to
            entry_type: FINE or BONUS
            status: Target status
            actual_amount: Payout for BONUS PAID; ignored for FINE
            note: Free-text operator note
            force: Refresh expected_amount on a LOCKED month

        Returns:
            The stored entry (unchanged when the call was a no-op)

        Raises:
            MonthlyResultNotFound: unknown monthly_result_id
            MissingExpectedAmount: FINE for a result with no fine
            InvalidStatusTransition: edge not allowed
            InvalidAmount: BONUS PAID without a positive amount
        """
        auth.require(HrmRole.SUPER_ADMIN)

        result = self.monthly_results.get_by_id(monthly_result_id)
        if result is None:
            raise MonthlyResultNotFound(monthly_result_id)
        month = self.months.get_by_id(result.month_id)
        if month is None:
            raise MonthNotFound(result.month_id)

        existing = self.fund_logs.get(monthly_result_id, entry_type)

        if entry_type == FundEntryType.FINE:
            expected = result.final_fine
        else:
            expected = result.gift_amount or Decimal("0")

        if existing is not None and month.is_locked and not force:
            expected = existing.expected_amount

        if entry_type == FundEntryType.FINE and expected <= 0:
            raise MissingExpectedAmount(monthly_result_id)

        entry = apply_transition(
            existing=existing,
            monthly_result_id=monthly_result_id,
            month_id=result.month_id,
            subject_user_id=result.subject_user_id,
            entry_type=entry_type,
            target=status,
            expected_amount=expected,
            actual_amount=actual_amount,
            note=note,
            actor_id=auth.actor_id,
            now=self._clock(),
        )
        if entry is existing:
            return existing

        stored = self.fund_logs.upsert(entry)
        invalidate_fund_summaries(self._cache_provider())

        logger.info(
            "fund_entry_marked",
            monthly_result_id=monthly_result_id,
            entry_type=entry_type.value,
            from_status=existing.status.value if existing else None,
            to_status=status.value,
            expected_amount=str(stored.expected_amount),
            actual_amount=str(stored.actual_amount) if stored.actual_amount is not None else None,
            actor_id=auth.actor_id,
        )
        return stored

    def summarize(self, auth: AuthContext, filters: Optional[FundFilters] = None) -> FundSummary:
        """Collected / paid / due totals over every matching entry."""
        auth.require(HrmRole.SUPER_ADMIN)
        filters = filters or FundFilters()

        cache = self._cache_provider()
        key = fund_summary_key(filters.model_dump_json())
        if cache is not None:
            try:
                cached = cache.get(key, FundSummary)
                if cached is not None:
                    return cached
            except redis.RedisError as e:
                logger.warning("fund_summary_cache_read_failed", error=str(e))

        summary = summarize_entries(self.fund_logs.iter_entries(filters))

        if cache is not None:
            try:
                cache.set(key, summary, TTL_FUND_SUMMARY)
            except redis.RedisError as e:
                logger.warning("fund_summary_cache_write_failed", error=str(e))
        return summary

    def list_entries(self, auth: AuthContext, filters: Optional[FundFilters] = None) -> List[FundLogEntry]:
        auth.require(HrmRole.SUPER_ADMIN)
        return list(self.fund_logs.iter_entries(filters or FundFilters()))
