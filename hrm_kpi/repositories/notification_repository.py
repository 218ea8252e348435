"""
Notification Outbox Repository - HRM KPI Engine
hrm_kpi/repositories/notification_repository.py

Outbox table drained by the notification dispatcher. Intents are appended
inside the same transaction as the derived writes that produced them.
"""

from datetime import datetime
from typing import Any, Dict, List

from hrm_kpi.models.enumerations import NotificationStatus, NotificationType
from hrm_kpi.models.notification import NotificationIntent
from hrm_kpi.repositories.base import BaseRepository


class NotificationOutboxRepository(BaseRepository):
    """Repository for HRM_NOTIFICATION_OUTBOX."""

    TABLE_NAME = "HRM_NOTIFICATION_OUTBOX"

    def enqueue_many(self, intents: List[NotificationIntent], cursor: Any = None) -> int:
        sql = """
            INSERT INTO HRM_NOTIFICATION_OUTBOX (
                ID, USER_ID, TYPE, TITLE, MESSAGE, LINK, STATUS, ATTEMPTS, LAST_ERROR,
                CREATED_AT, DISPATCHED_AT
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        for intent in intents:
            params = (
                intent.id, intent.user_id, intent.type.value, intent.title, intent.message,
                intent.link, intent.status.value, intent.attempts, intent.last_error,
                intent.created_at, intent.dispatched_at,
            )
            self.execute_query(sql, params, commit=cursor is None, cursor=cursor)
        return len(intents)

    def list_pending(self, limit: int, max_attempts: int) -> List[NotificationIntent]:
        """Oldest PENDING intents that still have attempts left."""
        sql = """
            SELECT ID, USER_ID, TYPE, TITLE, MESSAGE, LINK, STATUS, ATTEMPTS, LAST_ERROR,
                   CREATED_AT, DISPATCHED_AT
            FROM HRM_NOTIFICATION_OUTBOX
            WHERE STATUS = %s AND ATTEMPTS < %s
            ORDER BY CREATED_AT, ID
            LIMIT %s
        """
        rows = self.execute_query(
            sql, (NotificationStatus.PENDING.value, max_attempts, limit), fetch_all=True
        )
        return [self._row_to_intent(row) for row in rows]

    def count_pending(self, max_attempts: int) -> int:
        row = self.execute_query(
            "SELECT COUNT(*) AS N FROM HRM_NOTIFICATION_OUTBOX WHERE STATUS = %s AND ATTEMPTS < %s",
            (NotificationStatus.PENDING.value, max_attempts),
            fetch_one=True,
        )
        return int(self.row_to_dict(row).get("n", 0)) if row else 0

    def mark_sent(self, intent_id: str, dispatched_at: datetime) -> None:
        sql = """
            UPDATE HRM_NOTIFICATION_OUTBOX
            SET STATUS = %s, ATTEMPTS = ATTEMPTS + 1, LAST_ERROR = NULL, DISPATCHED_AT = %s
            WHERE ID = %s
        """
        self.execute_query(sql, (NotificationStatus.SENT.value, dispatched_at, intent_id), commit=True)

    def mark_failed(self, intent_id: str, error: str, give_up: bool) -> None:
        """Record a failed attempt; the intent stays PENDING unless give_up."""
        status = NotificationStatus.FAILED if give_up else NotificationStatus.PENDING
        sql = """
            UPDATE HRM_NOTIFICATION_OUTBOX
            SET STATUS = %s, ATTEMPTS = ATTEMPTS + 1, LAST_ERROR = %s
            WHERE ID = %s
        """
        self.execute_query(sql, (status.value, error[:1000], intent_id), commit=True)

    def _row_to_intent(self, row: Dict[str, Any]) -> NotificationIntent:
        data = self.row_to_dict(row)
        return NotificationIntent(
            id=data["id"],
            user_id=data["user_id"],
            type=NotificationType(data["type"]),
            title=data["title"],
            message=data["message"],
            link=data.get("link"),
            status=NotificationStatus(data["status"]),
            attempts=data["attempts"],
            last_error=data.get("last_error"),
            created_at=self.normalize_timestamp(data["created_at"]),
            dispatched_at=self.normalize_timestamp(data.get("dispatched_at")),
        )
