"""
Assignment Repository - HRM KPI Engine
hrm_kpi/repositories/assignment_repository.py

Read-only access to the external marker → subject assignment registry.
Assignments are read fresh on every compute run; nothing here caches them.
"""

from typing import Any, Dict, List, Optional

from hrm_kpi.models.evaluation import Assignment
from hrm_kpi.repositories.base import BaseRepository


class AssignmentRepository(BaseRepository):
    """Repository for HRM_ASSIGNMENTS (read only)."""

    TABLE_NAME = "HRM_ASSIGNMENTS"

    def list_active(self, marker_admin_id: Optional[str] = None) -> List[Assignment]:
        """
        Active marker → subject pairs.

        Args:
            marker_admin_id: Restrict to one marker

        Returns:
            List of active assignments ordered by (marker, subject)
        """
        sql = """
            SELECT MARKER_ADMIN_ID, SUBJECT_USER_ID, IS_ACTIVE
            FROM HRM_ASSIGNMENTS
            WHERE IS_ACTIVE = TRUE
        """
        params: tuple = ()
        if marker_admin_id:
            sql += " AND MARKER_ADMIN_ID = %s"
            params = (marker_admin_id,)
        sql += " ORDER BY MARKER_ADMIN_ID, SUBJECT_USER_ID"

        rows = self.execute_query(sql, params, fetch_all=True)
        return [self._row_to_assignment(row) for row in rows]

    def _row_to_assignment(self, row: Dict[str, Any]) -> Assignment:
        data = self.row_to_dict(row)
        return Assignment(
            marker_admin_id=data["marker_admin_id"],
            subject_user_id=data["subject_user_id"],
            is_active=bool(data["is_active"]),
        )
