from pydantic import BaseModel, Field
from uuid import uuid4
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from hrm_kpi.models.enumerations import FundEntryType, FundStatus
from hrm_kpi.models.types import Money


class FundLogEntry(BaseModel):
    """
    Ledger row for a monthly fine or bonus.
    Natural key: (monthly_result_id, entry_type).
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    monthly_result_id: str
    month_id: str
    subject_user_id: str
    entry_type: FundEntryType
    status: FundStatus = FundStatus.DUE
    expected_amount: Money = Field(default=Decimal("0"), ge=0)
    actual_amount: Optional[Money] = Field(default=None, ge=0)
    note: Optional[str] = Field(default=None, max_length=1000)
    marked_by_admin_id: Optional[str] = None
    marked_at: Optional[datetime] = None

    @property
    def natural_key(self) -> Tuple[str, FundEntryType]:
        return (self.monthly_result_id, self.entry_type)


class FundLedgerUpsert(BaseModel):
    """
    Request body for marking a ledger entry.
    """

    monthly_result_id: str = Field(..., min_length=1)
    entry_type: FundEntryType
    status: FundStatus
    actual_amount: Optional[Decimal] = Field(
        default=None,
        description="Operator-entered payout; required (> 0) when a BONUS is PAID"
    )
    note: Optional[str] = Field(default=None, max_length=1000)
    force: bool = Field(
        default=False,
        description="Refresh expected_amount even though the month is locked"
    )


class FundFilters(BaseModel):
    month_key: Optional[str] = Field(default=None, pattern=r"^\d{4}-\d{2}$")
    entry_type: Optional[FundEntryType] = None
    status: Optional[FundStatus] = None
    subject_user_id: Optional[str] = None


class FundSummary(BaseModel):
    fine_collected: Money = Decimal("0")
    bonus_paid: Money = Decimal("0")
    due_fine: Money = Decimal("0")
    due_bonus: Money = Decimal("0")
    current_balance: Money = Decimal("0")
