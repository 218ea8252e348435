"""
Submission Repository - HRM KPI Engine
hrm_kpi/repositories/submission_repository.py

Read access to marker submissions and their per-criterion items.
"""

from collections import defaultdict
from typing import Any, Dict, List

from hrm_kpi.models.evaluation import CriterionScore, Submission
from hrm_kpi.repositories.base import BaseRepository


class SubmissionRepository(BaseRepository):
    """Repository for HRM_KPI_SUBMISSIONS and HRM_KPI_SUBMISSION_ITEMS."""

    TABLE_NAME = "HRM_KPI_SUBMISSIONS"

    def list_for_week(self, week_id: str) -> List[Submission]:
        """
        Every submission recorded for a week, with criterion items attached.

        Args:
            week_id: Week ID

        Returns:
            Submissions ordered by (subject, marker)
        """
        sql = """
            SELECT ID, WEEK_ID, SUBJECT_USER_ID, MARKER_ADMIN_ID, TOTAL_SCORE, COMMENT
            FROM HRM_KPI_SUBMISSIONS
            WHERE WEEK_ID = %s
            ORDER BY SUBJECT_USER_ID, MARKER_ADMIN_ID
        """
        rows = self.execute_query(sql, (week_id,), fetch_all=True)
        if not rows:
            return []

        items = self._items_for_week(week_id)
        return [self._row_to_submission(row, items) for row in rows]

    def _items_for_week(self, week_id: str) -> Dict[str, List[CriterionScore]]:
        sql = """
            SELECT i.SUBMISSION_ID, i.CRITERIA_ID, i.SCORE_RAW
            FROM HRM_KPI_SUBMISSION_ITEMS i
            JOIN HRM_KPI_SUBMISSIONS s ON s.ID = i.SUBMISSION_ID
            WHERE s.WEEK_ID = %s
            ORDER BY i.SUBMISSION_ID, i.CRITERIA_ID
        """
        by_submission: Dict[str, List[CriterionScore]] = defaultdict(list)
        for row in self.iter_query(sql, (week_id,)):
            data = self.row_to_dict(row)
            by_submission[data["submission_id"]].append(
                CriterionScore(
                    criteria_id=data["criteria_id"],
                    score_raw=self.to_decimal(data["score_raw"]),
                )
            )
        return by_submission

    def _row_to_submission(
        self, row: Dict[str, Any], items: Dict[str, List[CriterionScore]]
    ) -> Submission:
        data = self.row_to_dict(row)
        return Submission(
            id=data["id"],
            week_id=data["week_id"],
            subject_user_id=data["subject_user_id"],
            marker_admin_id=data["marker_admin_id"],
            per_criterion_scores=items.get(data["id"], []),
            total_score=self.to_decimal(data["total_score"]),
            comment=data.get("comment"),
        )
