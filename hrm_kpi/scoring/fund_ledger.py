"""
scoring/fund_ledger.py — Ledger status machine and fund summary

Transition graph (a missing entry counts as DUE):

    FINE    DUE ──► COLLECTED   actual_amount = expected_amount
    BONUS   DUE ──► PAID        actual_amount = operator amount (> 0)
    both    COLLECTED/PAID ──► DUE   actual_amount and marked_at cleared
    both    X ──► X             idempotent

Balance:
    current_balance = fine_collected − bonus_paid
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from hrm_kpi.core.exceptions import InvalidAmount, InvalidStatusTransition
from hrm_kpi.models.enumerations import FundEntryType, FundStatus
from hrm_kpi.models.fund import FundLogEntry, FundSummary
from hrm_kpi.scoring.utils import round2

_TERMINAL: Dict[FundEntryType, FundStatus] = {
    FundEntryType.FINE: FundStatus.COLLECTED,
    FundEntryType.BONUS: FundStatus.PAID,
}

ALLOWED_TRANSITIONS: FrozenSet[Tuple[FundEntryType, FundStatus, FundStatus]] = frozenset(
    [(t, FundStatus.DUE, s) for t, s in _TERMINAL.items()]
    + [(t, s, FundStatus.DUE) for t, s in _TERMINAL.items()]
    + [(t, s, s) for t, s in _TERMINAL.items()]
    + [(t, FundStatus.DUE, FundStatus.DUE) for t in _TERMINAL]
)


def check_transition(
    entry_type: FundEntryType,
    current: Optional[FundStatus],
    target: FundStatus,
) -> None:
    if (entry_type, current or FundStatus.DUE, target) not in ALLOWED_TRANSITIONS:
        raise InvalidStatusTransition(
            entry_type.value, current.value if current else None, target.value
        )


def apply_transition(
    *,
    existing: Optional[FundLogEntry],
    monthly_result_id: str,
    month_id: str,
    subject_user_id: str,
    entry_type: FundEntryType,
    target: FundStatus,
    expected_amount: Decimal,
    actual_amount: Optional[Decimal],
    note: Optional[str],
    actor_id: str,
    now: datetime,
) -> FundLogEntry:
    """
    Build the next state of a ledger entry.

    Raises:
        InvalidStatusTransition: edge not in the graph
        InvalidAmount: BONUS paid without a positive amount
    """
    current = existing.status if existing else None
    check_transition(entry_type, current, target)

    expected_amount = round2(expected_amount)
    note = (note.strip() or None) if note else None

    if target == FundStatus.DUE:
        new_actual = None
        marked_at = None
    elif entry_type == FundEntryType.FINE:
        new_actual = expected_amount
        marked_at = existing.marked_at if current == target else now
    else:
        if actual_amount is None or Decimal(str(actual_amount)) <= 0:
            raise InvalidAmount(
                "Bonus paid amount is required and must be > 0",
                {"actual_amount": str(actual_amount) if actual_amount is not None else None},
            )
        new_actual = round2(actual_amount)
        marked_at = existing.marked_at if current == target else now

    base = existing.model_dump() if existing else {}
    base.update(
        monthly_result_id=monthly_result_id,
        month_id=month_id,
        subject_user_id=subject_user_id,
        entry_type=entry_type,
        status=target,
        expected_amount=expected_amount,
        actual_amount=new_actual,
        note=note,
        marked_at=marked_at,
    )

    candidate = FundLogEntry(**base)
    if existing is not None and _same_state(existing, candidate):
        return existing

    candidate.marked_by_admin_id = actor_id
    return candidate


def _same_state(a: FundLogEntry, b: FundLogEntry) -> bool:
    exclude = {"marked_by_admin_id"}
    return a.model_dump(exclude=exclude) == b.model_dump(exclude=exclude)


def summarize_entries(entries: Iterable[FundLogEntry]) -> FundSummary:
    """Fold every entry into collected/paid/due totals."""
    fine_collected = Decimal("0")
    bonus_paid = Decimal("0")
    due_fine = Decimal("0")
    due_bonus = Decimal("0")

    for entry in entries:
        expected = entry.expected_amount or Decimal("0")
        actual = entry.actual_amount if entry.actual_amount is not None else expected
        if entry.entry_type == FundEntryType.FINE:
            if entry.status == FundStatus.COLLECTED:
                fine_collected += actual
            elif entry.status == FundStatus.DUE:
                due_fine += expected
        elif entry.entry_type == FundEntryType.BONUS:
            if entry.status == FundStatus.PAID:
                bonus_paid += actual
            elif entry.status == FundStatus.DUE:
                due_bonus += expected

    return FundSummary(
        fine_collected=round2(fine_collected),
        bonus_paid=round2(bonus_paid),
        due_fine=round2(due_fine),
        due_bonus=round2(due_bonus),
        current_balance=round2(fine_collected - bonus_paid),
    )
