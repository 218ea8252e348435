"""
Period Repository - HRM KPI Engine
hrm_kpi/repositories/period_repository.py

Data access for HRM_WEEKS and HRM_MONTHS.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from hrm_kpi.models.enumerations import PeriodStatus
from hrm_kpi.models.period import Month, Week
from hrm_kpi.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class WeekRepository(BaseRepository):
    """Repository for evaluation weeks keyed by their Friday."""

    TABLE_NAME = "HRM_WEEKS"

    _SELECT = "SELECT ID, WEEK_KEY, FRIDAY_DATE, STATUS FROM HRM_WEEKS"

    def get_by_key(self, week_key: str, cursor: Any = None) -> Optional[Week]:
        """
        Retrieve a week by its key.

        Args:
            week_key: Friday as YYYY-MM-DD
            cursor: Optional transaction cursor

        Returns:
            Week or None if not found
        """
        row = self.execute_query(
            f"{self._SELECT} WHERE WEEK_KEY = %s", (week_key,), fetch_one=True, cursor=cursor
        )
        return self._row_to_week(row) if row else None

    def get_by_id(self, week_id: str) -> Optional[Week]:
        row = self.execute_query(f"{self._SELECT} WHERE ID = %s", (week_id,), fetch_one=True)
        return self._row_to_week(row) if row else None

    def list_by_keys(self, week_keys: List[str]) -> List[Week]:
        """Weeks whose key is in week_keys, ordered by Friday."""
        if not week_keys:
            return []
        sql = f"{self._SELECT} WHERE WEEK_KEY IN ({self.in_clause(week_keys)}) ORDER BY FRIDAY_DATE"
        rows = self.execute_query(sql, tuple(week_keys), fetch_all=True)
        return [self._row_to_week(row) for row in rows]

    def ensure(self, week_key: str, friday_date: date) -> Tuple[Week, bool]:
        """
        Create the week as OPEN if missing.

        MERGE on WEEK_KEY makes concurrent callers converge on one row.

        Returns:
            (week, created)
        """
        now = datetime.now(timezone.utc)
        sql = """
            MERGE INTO HRM_WEEKS t
            USING (SELECT %s AS WEEK_KEY) s
            ON t.WEEK_KEY = s.WEEK_KEY
            WHEN NOT MATCHED THEN INSERT (ID, WEEK_KEY, FRIDAY_DATE, STATUS, CREATED_AT, UPDATED_AT)
            VALUES (%s, %s, %s, %s, %s, %s)
        """
        params = (
            week_key,
            str(uuid4()), week_key, friday_date, PeriodStatus.OPEN.value, now, now,
        )
        inserted = self.execute_query(sql, params, commit=True)
        week = self.get_by_key(week_key)
        created = bool(inserted)
        if created:
            logger.info("Created week %s", week_key)
        return week, created

    def set_status(self, week_key: str, status: PeriodStatus, cursor: Any = None) -> Optional[Week]:
        sql = "UPDATE HRM_WEEKS SET STATUS = %s, UPDATED_AT = %s WHERE WEEK_KEY = %s"
        self.execute_query(
            sql, (status.value, datetime.now(timezone.utc), week_key), commit=True, cursor=cursor
        )
        return self.get_by_key(week_key, cursor=cursor)

    def _row_to_week(self, row: Dict[str, Any]) -> Week:
        data = self.row_to_dict(row)
        return Week(
            id=data["id"],
            week_key=data["week_key"],
            friday_date=data["friday_date"],
            status=PeriodStatus(data["status"]),
        )


class MonthRepository(BaseRepository):
    """Repository for calendar months."""

    TABLE_NAME = "HRM_MONTHS"

    _SELECT = "SELECT ID, MONTH_KEY, START_DATE, END_DATE, STATUS FROM HRM_MONTHS"

    def get_by_key(self, month_key: str, cursor: Any = None) -> Optional[Month]:
        row = self.execute_query(
            f"{self._SELECT} WHERE MONTH_KEY = %s", (month_key,), fetch_one=True, cursor=cursor
        )
        return self._row_to_month(row) if row else None

    def get_by_id(self, month_id: str) -> Optional[Month]:
        row = self.execute_query(f"{self._SELECT} WHERE ID = %s", (month_id,), fetch_one=True)
        return self._row_to_month(row) if row else None

    def ensure(self, month_key: str, start_date: date, end_date: date) -> Tuple[Month, bool]:
        """
        Create the month as OPEN if missing.

        Returns:
            (month, created)
        """
        now = datetime.now(timezone.utc)
        sql = """
            MERGE INTO HRM_MONTHS t
            USING (SELECT %s AS MONTH_KEY) s
            ON t.MONTH_KEY = s.MONTH_KEY
            WHEN NOT MATCHED THEN INSERT (ID, MONTH_KEY, START_DATE, END_DATE, STATUS, CREATED_AT, UPDATED_AT)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
        """
        params = (
            month_key,
            str(uuid4()), month_key, start_date, end_date, PeriodStatus.OPEN.value, now, now,
        )
        inserted = self.execute_query(sql, params, commit=True)
        month = self.get_by_key(month_key)
        created = bool(inserted)
        if created:
            logger.info("Created month %s", month_key)
        return month, created

    def set_status(self, month_key: str, status: PeriodStatus, cursor: Any = None) -> Optional[Month]:
        sql = "UPDATE HRM_MONTHS SET STATUS = %s, UPDATED_AT = %s WHERE MONTH_KEY = %s"
        self.execute_query(
            sql, (status.value, datetime.now(timezone.utc), month_key), commit=True, cursor=cursor
        )
        return self.get_by_key(month_key, cursor=cursor)

    def _row_to_month(self, row: Dict[str, Any]) -> Month:
        data = self.row_to_dict(row)
        return Month(
            id=data["id"],
            month_key=data["month_key"],
            start_date=data["start_date"],
            end_date=data["end_date"],
            status=PeriodStatus(data["status"]),
        )
