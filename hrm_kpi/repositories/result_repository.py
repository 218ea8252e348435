"""
Result Repositories - HRM KPI Engine
hrm_kpi/repositories/result_repository.py

Data access for derived rows: weekly results, admin compliance,
monthly results and the per-subject month state. Every write is a MERGE on
the row's natural key so recomputes overwrite instead of duplicating.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from hrm_kpi.models.enumerations import ActionType, ComplianceStatus, Tier
from hrm_kpi.models.results import AdminCompliance, MonthlyResult, SubjectMonthState, WeeklyResult
from hrm_kpi.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class WeeklyResultRepository(BaseRepository):
    """Repository for HRM_WEEKLY_RESULTS."""

    TABLE_NAME = "HRM_WEEKLY_RESULTS"

    _SELECT = """
        SELECT WEEK_ID, SUBJECT_USER_ID, WEEKLY_AVG_SCORE, EXPECTED_MARKERS_COUNT,
               SUBMITTED_MARKERS_COUNT, IS_COMPLETE
        FROM HRM_WEEKLY_RESULTS
    """

    def replace_for_week(self, week_id: str, rows: List[WeeklyResult], cursor: Any = None) -> int:
        """
        Upsert every row and drop rows for subjects no longer in scope.

        Args:
            week_id: Week ID
            rows: Full derived set for the week
            cursor: Transaction cursor; all statements run inside it

        Returns:
            Number of rows upserted
        """
        sql = """
            MERGE INTO HRM_WEEKLY_RESULTS t
            USING (SELECT %s AS WEEK_ID, %s AS SUBJECT_USER_ID) s
            ON t.WEEK_ID = s.WEEK_ID AND t.SUBJECT_USER_ID = s.SUBJECT_USER_ID
            WHEN MATCHED THEN UPDATE SET
                WEEKLY_AVG_SCORE = %s,
                EXPECTED_MARKERS_COUNT = %s,
                SUBMITTED_MARKERS_COUNT = %s,
                IS_COMPLETE = %s
            WHEN NOT MATCHED THEN INSERT (
                WEEK_ID, SUBJECT_USER_ID, WEEKLY_AVG_SCORE, EXPECTED_MARKERS_COUNT,
                SUBMITTED_MARKERS_COUNT, IS_COMPLETE
            ) VALUES (%s, %s, %s, %s, %s, %s)
        """
        for row in rows:
            values = (
                row.weekly_avg_score, row.expected_markers_count,
                row.submitted_markers_count, row.is_complete,
            )
            params = (row.week_id, row.subject_user_id) + values + (row.week_id, row.subject_user_id) + values
            self.execute_query(sql, params, commit=cursor is None, cursor=cursor)

        keep = [r.subject_user_id for r in rows]
        if keep:
            delete_sql = (
                "DELETE FROM HRM_WEEKLY_RESULTS WHERE WEEK_ID = %s "
                f"AND SUBJECT_USER_ID NOT IN ({self.in_clause(keep)})"
            )
            self.execute_query(delete_sql, (week_id, *keep), commit=cursor is None, cursor=cursor)
        else:
            self.execute_query(
                "DELETE FROM HRM_WEEKLY_RESULTS WHERE WEEK_ID = %s",
                (week_id,), commit=cursor is None, cursor=cursor,
            )
        return len(rows)

    def list_for_week(self, week_id: str) -> List[WeeklyResult]:
        rows = self.execute_query(
            f"{self._SELECT} WHERE WEEK_ID = %s ORDER BY SUBJECT_USER_ID", (week_id,), fetch_all=True
        )
        return [self._row_to_result(row) for row in rows]

    def list_for_weeks(self, week_ids: List[str]) -> List[WeeklyResult]:
        """Weekly results across several weeks, ordered by (subject, week)."""
        if not week_ids:
            return []
        sql = (
            f"{self._SELECT} WHERE WEEK_ID IN ({self.in_clause(week_ids)}) "
            "ORDER BY SUBJECT_USER_ID, WEEK_ID"
        )
        return [self._row_to_result(row) for row in self.iter_query(sql, tuple(week_ids))]

    def _row_to_result(self, row: Dict[str, Any]) -> WeeklyResult:
        data = self.row_to_dict(row)
        return WeeklyResult(
            week_id=data["week_id"],
            subject_user_id=data["subject_user_id"],
            weekly_avg_score=self.to_decimal(data["weekly_avg_score"]),
            expected_markers_count=data["expected_markers_count"],
            submitted_markers_count=data["submitted_markers_count"],
            is_complete=bool(data["is_complete"]),
        )


class AdminComplianceRepository(BaseRepository):
    """Repository for HRM_ADMIN_COMPLIANCE."""

    TABLE_NAME = "HRM_ADMIN_COMPLIANCE"

    def replace_for_week(self, week_id: str, rows: List[AdminCompliance], cursor: Any = None) -> int:
        sql = """
            MERGE INTO HRM_ADMIN_COMPLIANCE t
            USING (SELECT %s AS WEEK_ID, %s AS ADMIN_USER_ID) s
            ON t.WEEK_ID = s.WEEK_ID AND t.ADMIN_USER_ID = s.ADMIN_USER_ID
            WHEN MATCHED THEN UPDATE SET
                EXPECTED_COUNT = %s,
                SUBMITTED_COUNT = %s,
                MISSED_COUNT = %s,
                STATUS = %s
            WHEN NOT MATCHED THEN INSERT (
                WEEK_ID, ADMIN_USER_ID, EXPECTED_COUNT, SUBMITTED_COUNT, MISSED_COUNT, STATUS
            ) VALUES (%s, %s, %s, %s, %s, %s)
        """
        for row in rows:
            values = (row.expected_count, row.submitted_count, row.missed_count, row.status.value)
            params = (row.week_id, row.admin_user_id) + values + (row.week_id, row.admin_user_id) + values
            self.execute_query(sql, params, commit=cursor is None, cursor=cursor)

        keep = [r.admin_user_id for r in rows]
        if keep:
            delete_sql = (
                "DELETE FROM HRM_ADMIN_COMPLIANCE WHERE WEEK_ID = %s "
                f"AND ADMIN_USER_ID NOT IN ({self.in_clause(keep)})"
            )
            self.execute_query(delete_sql, (week_id, *keep), commit=cursor is None, cursor=cursor)
        else:
            self.execute_query(
                "DELETE FROM HRM_ADMIN_COMPLIANCE WHERE WEEK_ID = %s",
                (week_id,), commit=cursor is None, cursor=cursor,
            )
        return len(rows)

    def list_for_week(self, week_id: str) -> List[AdminCompliance]:
        sql = """
            SELECT WEEK_ID, ADMIN_USER_ID, EXPECTED_COUNT, SUBMITTED_COUNT, MISSED_COUNT, STATUS
            FROM HRM_ADMIN_COMPLIANCE
            WHERE WEEK_ID = %s
            ORDER BY ADMIN_USER_ID
        """
        rows = self.execute_query(sql, (week_id,), fetch_all=True)
        result = []
        for row in rows:
            data = self.row_to_dict(row)
            result.append(
                AdminCompliance(
                    week_id=data["week_id"],
                    admin_user_id=data["admin_user_id"],
                    expected_count=data["expected_count"],
                    submitted_count=data["submitted_count"],
                    missed_count=data["missed_count"],
                    status=ComplianceStatus(data["status"]),
                )
            )
        return result


class MonthlyResultRepository(BaseRepository):
    """Repository for HRM_MONTHLY_RESULTS."""

    TABLE_NAME = "HRM_MONTHLY_RESULTS"

    _COLUMNS = (
        "ID", "MONTH_ID", "SUBJECT_USER_ID", "MONTHLY_SCORE", "TIER", "ACTION_TYPE",
        "BASE_FINE", "MONTH_FINE_COUNT", "FINAL_FINE", "GIFT_TYPE", "GIFT_AMOUNT",
        "WEEKS_COUNT_USED", "EXPECTED_WEEKS_COUNT", "IS_COMPLETE_MONTH", "COMPUTED_AT",
    )

    @property
    def _select(self) -> str:
        return f"SELECT {', '.join('r.' + c for c in self._COLUMNS)} FROM HRM_MONTHLY_RESULTS r"

    def get_by_id(self, result_id: str) -> Optional[MonthlyResult]:
        row = self.execute_query(f"{self._select} WHERE r.ID = %s", (result_id,), fetch_one=True)
        return self._row_to_result(row) if row else None

    def get(self, month_id: str, subject_user_id: str, cursor: Any = None) -> Optional[MonthlyResult]:
        row = self.execute_query(
            f"{self._select} WHERE r.MONTH_ID = %s AND r.SUBJECT_USER_ID = %s",
            (month_id, subject_user_id),
            fetch_one=True,
            cursor=cursor,
        )
        return self._row_to_result(row) if row else None

    def latest_before(
        self, month_key: str, subject_user_id: str
    ) -> Optional[Tuple[str, MonthlyResult]]:
        """Most recent (month_key, result) for the subject strictly before month_key."""
        sql = (
            f"{self._select}, m.MONTH_KEY AS PERIOD_KEY "
            "JOIN HRM_MONTHS m ON m.ID = r.MONTH_ID "
            "WHERE m.MONTH_KEY < %s AND r.SUBJECT_USER_ID = %s "
            "ORDER BY m.MONTH_KEY DESC LIMIT 1"
        )
        row = self.execute_query(sql, (month_key, subject_user_id), fetch_one=True)
        if not row:
            return None
        return row["PERIOD_KEY"], self._row_to_result(row)

    def list_for_month(self, month_id: str) -> List[MonthlyResult]:
        sql = f"{self._select} WHERE r.MONTH_ID = %s ORDER BY r.SUBJECT_USER_ID"
        return [self._row_to_result(row) for row in self.iter_query(sql, (month_id,))]

    def upsert(self, result: MonthlyResult, cursor: Any = None) -> MonthlyResult:
        """
        MERGE on (MONTH_ID, SUBJECT_USER_ID). An existing row keeps its ID.

        Returns:
            The stored row
        """
        sql = """
            MERGE INTO HRM_MONTHLY_RESULTS t
            USING (SELECT %s AS MONTH_ID, %s AS SUBJECT_USER_ID) s
            ON t.MONTH_ID = s.MONTH_ID AND t.SUBJECT_USER_ID = s.SUBJECT_USER_ID
            WHEN MATCHED THEN UPDATE SET
                MONTHLY_SCORE = %s,
                TIER = %s,
                ACTION_TYPE = %s,
                BASE_FINE = %s,
                MONTH_FINE_COUNT = %s,
                FINAL_FINE = %s,
                GIFT_TYPE = %s,
                GIFT_AMOUNT = %s,
                WEEKS_COUNT_USED = %s,
                EXPECTED_WEEKS_COUNT = %s,
                IS_COMPLETE_MONTH = %s,
                COMPUTED_AT = %s
            WHEN NOT MATCHED THEN INSERT (
                ID, MONTH_ID, SUBJECT_USER_ID, MONTHLY_SCORE, TIER, ACTION_TYPE,
                BASE_FINE, MONTH_FINE_COUNT, FINAL_FINE, GIFT_TYPE, GIFT_AMOUNT,
                WEEKS_COUNT_USED, EXPECTED_WEEKS_COUNT, IS_COMPLETE_MONTH, COMPUTED_AT
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        values = (
            result.monthly_score,
            result.tier.value,
            result.action_type.value,
            result.base_fine,
            result.month_fine_count,
            result.final_fine,
            result.gift_type.value if result.gift_type else None,
            result.gift_amount,
            result.weeks_count_used,
            result.expected_weeks_count,
            result.is_complete_month,
            result.computed_at,
        )
        params = (
            (result.month_id, result.subject_user_id)
            + values
            + (result.id, result.month_id, result.subject_user_id)
            + values
        )
        self.execute_query(sql, params, commit=cursor is None, cursor=cursor)
        return self.get(result.month_id, result.subject_user_id, cursor=cursor)

    def _row_to_result(self, row: Dict[str, Any]) -> MonthlyResult:
        data = self.row_to_dict(row)
        return MonthlyResult(
            id=data["id"],
            month_id=data["month_id"],
            subject_user_id=data["subject_user_id"],
            monthly_score=self.to_decimal(data["monthly_score"]),
            tier=Tier(data["tier"]),
            action_type=ActionType(data["action_type"]),
            base_fine=self.to_decimal(data["base_fine"]),
            month_fine_count=data["month_fine_count"],
            final_fine=self.to_decimal(data["final_fine"]),
            gift_type=ActionType(data["gift_type"]) if data.get("gift_type") else None,
            gift_amount=self.to_decimal(data.get("gift_amount")),
            weeks_count_used=data["weeks_count_used"],
            expected_weeks_count=data["expected_weeks_count"],
            is_complete_month=bool(data["is_complete_month"]),
            computed_at=self.normalize_timestamp(data["computed_at"]),
        )


class SubjectMonthStateRepository(BaseRepository):
    """Repository for HRM_SUBJECT_MONTH_STATE."""

    TABLE_NAME = "HRM_SUBJECT_MONTH_STATE"

    _FIELDS = (
        "last_month_key", "last_month_tier", "consecutive_improvement_months",
        "consecutive_fine_months", "prior_month_key", "prior_month_tier",
        "prior_consecutive_improvement_months", "prior_consecutive_fine_months",
    )

    def get(self, subject_user_id: str) -> Optional[SubjectMonthState]:
        sql = f"""
            SELECT SUBJECT_USER_ID, {', '.join(f.upper() for f in self._FIELDS)}
            FROM HRM_SUBJECT_MONTH_STATE
            WHERE SUBJECT_USER_ID = %s
        """
        row = self.execute_query(sql, (subject_user_id,), fetch_one=True)
        if not row:
            return None
        data = self.row_to_dict(row)
        for key in ("last_month_tier", "prior_month_tier"):
            data[key] = Tier(data[key]) if data.get(key) else None
        return SubjectMonthState(**data)

    def upsert(self, state: SubjectMonthState, cursor: Any = None) -> SubjectMonthState:
        columns = [f.upper() for f in self._FIELDS]
        set_clause = ",\n                ".join(f"{c} = %s" for c in columns)
        sql = f"""
            MERGE INTO HRM_SUBJECT_MONTH_STATE t
            USING (SELECT %s AS SUBJECT_USER_ID) s
            ON t.SUBJECT_USER_ID = s.SUBJECT_USER_ID
            WHEN MATCHED THEN UPDATE SET
                {set_clause},
                UPDATED_AT = CURRENT_TIMESTAMP()
            WHEN NOT MATCHED THEN INSERT (SUBJECT_USER_ID, {', '.join(columns)}, UPDATED_AT)
            VALUES (%s, {', '.join(['%s'] * len(columns))}, CURRENT_TIMESTAMP())
        """
        dumped = state.model_dump(mode="json")
        values = tuple(dumped[f] for f in self._FIELDS)
        params = (state.subject_user_id,) + values + (state.subject_user_id,) + values
        self.execute_query(sql, params, commit=cursor is None, cursor=cursor)
        return state
