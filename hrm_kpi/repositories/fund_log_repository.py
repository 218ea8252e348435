"""
Fund Log Repository - HRM KPI Engine
hrm_kpi/repositories/fund_log_repository.py

Data access for the fine/bonus ledger (HRM_FUND_LOGS).
"""

from typing import Any, Dict, Iterator, List, Optional

from hrm_kpi.models.enumerations import FundEntryType, FundStatus
from hrm_kpi.models.fund import FundFilters, FundLogEntry
from hrm_kpi.repositories.base import BaseRepository


class FundLogRepository(BaseRepository):
    """Repository for ledger entries keyed by (monthly_result_id, entry_type)."""

    TABLE_NAME = "HRM_FUND_LOGS"

    _SELECT = """
        SELECT f.ID, f.MONTHLY_RESULT_ID, f.MONTH_ID, f.SUBJECT_USER_ID, f.ENTRY_TYPE, f.STATUS,
               f.EXPECTED_AMOUNT, f.ACTUAL_AMOUNT, f.NOTE, f.MARKED_BY_ADMIN_ID, f.MARKED_AT
        FROM HRM_FUND_LOGS f
    """

    def get(self, monthly_result_id: str, entry_type: FundEntryType, cursor: Any = None) -> Optional[FundLogEntry]:
        row = self.execute_query(
            f"{self._SELECT} WHERE f.MONTHLY_RESULT_ID = %s AND f.ENTRY_TYPE = %s",
            (monthly_result_id, entry_type.value),
            fetch_one=True,
            cursor=cursor,
        )
        return self._row_to_entry(row) if row else None

    def upsert(self, entry: FundLogEntry, cursor: Any = None) -> FundLogEntry:
        """
        MERGE on (MONTHLY_RESULT_ID, ENTRY_TYPE).

        Args:
            entry: Full next state of the entry
            cursor: Optional transaction cursor

        Returns:
            The stored entry
        """
        sql = """
            MERGE INTO HRM_FUND_LOGS t
            USING (SELECT %s AS MONTHLY_RESULT_ID, %s AS ENTRY_TYPE) s
            ON t.MONTHLY_RESULT_ID = s.MONTHLY_RESULT_ID AND t.ENTRY_TYPE = s.ENTRY_TYPE
            WHEN MATCHED THEN UPDATE SET
                STATUS = %s,
                EXPECTED_AMOUNT = %s,
                ACTUAL_AMOUNT = %s,
                NOTE = %s,
                MARKED_BY_ADMIN_ID = %s,
                MARKED_AT = %s,
                UPDATED_AT = CURRENT_TIMESTAMP()
            WHEN NOT MATCHED THEN INSERT (
                ID, MONTHLY_RESULT_ID, MONTH_ID, SUBJECT_USER_ID, ENTRY_TYPE, STATUS,
                EXPECTED_AMOUNT, ACTUAL_AMOUNT, NOTE, MARKED_BY_ADMIN_ID, MARKED_AT,
                CREATED_AT, UPDATED_AT
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, CURRENT_TIMESTAMP(), CURRENT_TIMESTAMP())
        """
        params = (
            entry.monthly_result_id, entry.entry_type.value,
            # UPDATE
            entry.status.value, entry.expected_amount, entry.actual_amount,
            entry.note, entry.marked_by_admin_id, entry.marked_at,
            # INSERT
            entry.id, entry.monthly_result_id, entry.month_id, entry.subject_user_id,
            entry.entry_type.value, entry.status.value, entry.expected_amount,
            entry.actual_amount, entry.note, entry.marked_by_admin_id, entry.marked_at,
        )
        self.execute_query(sql, params, commit=cursor is None, cursor=cursor)
        return self.get(entry.monthly_result_id, entry.entry_type, cursor=cursor)

    def iter_entries(self, filters: Optional[FundFilters] = None) -> Iterator[FundLogEntry]:
        """
        Stream every entry matching filters (fetchmany batches, no row cap).

        Args:
            filters: month_key / entry_type / status / subject_user_id, all optional

        Yields:
            FundLogEntry ordered by (month, subject, entry_type)
        """
        filters = filters or FundFilters()
        sql = self._SELECT
        conditions: List[str] = []
        params: List[Any] = []

        if filters.month_key:
            sql += " JOIN HRM_MONTHS m ON m.ID = f.MONTH_ID"
            conditions.append("m.MONTH_KEY = %s")
            params.append(filters.month_key)
        if filters.entry_type:
            conditions.append("f.ENTRY_TYPE = %s")
            params.append(filters.entry_type.value)
        if filters.status:
            conditions.append("f.STATUS = %s")
            params.append(filters.status.value)
        if filters.subject_user_id:
            conditions.append("f.SUBJECT_USER_ID = %s")
            params.append(filters.subject_user_id)

        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY f.MONTH_ID, f.SUBJECT_USER_ID, f.ENTRY_TYPE"

        for row in self.iter_query(sql, tuple(params)):
            yield self._row_to_entry(row)

    def _row_to_entry(self, row: Dict[str, Any]) -> FundLogEntry:
        data = self.row_to_dict(row)
        return FundLogEntry(
            id=data["id"],
            monthly_result_id=data["monthly_result_id"],
            month_id=data["month_id"],
            subject_user_id=data["subject_user_id"],
            entry_type=FundEntryType(data["entry_type"]),
            status=FundStatus(data["status"]),
            expected_amount=self.to_decimal(data["expected_amount"]),
            actual_amount=self.to_decimal(data.get("actual_amount")),
            note=data.get("note"),
            marked_by_admin_id=data.get("marked_by_admin_id"),
            marked_at=self.normalize_timestamp(data.get("marked_at")),
        )
