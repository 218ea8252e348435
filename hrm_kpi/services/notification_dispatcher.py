"""
services/notification_dispatcher.py — Outbox drain

Compute paths only append NotificationIntent rows; this module delivers them.
Delivery is fire-and-forget from the compute's point of view: a failure is
recorded on the outbox row (attempts, last_error) and retried on the next
drain until NOTIFY_MAX_ATTEMPTS, then marked FAILED.
"""

from datetime import datetime, timezone
from typing import Optional

import httpx
import structlog

from hrm_kpi.config import settings
from hrm_kpi.models.notification import DispatchResult, NotificationIntent
from hrm_kpi.repositories.notification_repository import NotificationOutboxRepository

logger = structlog.get_logger(__name__)


class NotifierError(Exception):
    """Delivery of one intent failed."""


class LogNotifier:
    """Used when no webhook is configured: delivery is a structured log line."""

    def send(self, intent: NotificationIntent) -> None:
        logger.info(
            "notification_delivered",
            notification_id=intent.id,
            user_id=intent.user_id,
            type=intent.type.value,
            title=intent.title,
        )


class WebhookNotifier:
    """POSTs each intent as JSON to NOTIFY_WEBHOOK_URL."""

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.url = url
        self.client = client or httpx.Client(timeout=timeout)

    def send(self, intent: NotificationIntent) -> None:
        payload = intent.model_dump(
            mode="json", include={"id", "user_id", "type", "title", "message", "link", "created_at"}
        )
        try:
            resp = self.client.post(self.url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotifierError(f"Webhook returned {e.response.status_code}: {e.response.text[:200]}")
        except httpx.HTTPError as e:
            raise NotifierError(f"Webhook request failed: {e}")

    def close(self) -> None:
        self.client.close()


def build_notifier():
    if settings.NOTIFY_WEBHOOK_URL:
        return WebhookNotifier(settings.NOTIFY_WEBHOOK_URL, timeout=settings.NOTIFY_TIMEOUT_SECONDS)
    return LogNotifier()


class NotificationDispatcher:
    """Drains PENDING outbox rows through a notifier."""

    def __init__(
        self,
        outbox: Optional[NotificationOutboxRepository] = None,
        notifier=None,
        max_attempts: Optional[int] = None,
    ):
        self.outbox = outbox or NotificationOutboxRepository()
        self.notifier = notifier or build_notifier()
        self.max_attempts = max_attempts or settings.NOTIFY_MAX_ATTEMPTS

    def dispatch_pending(self, limit: Optional[int] = None) -> DispatchResult:
        """
        Deliver up to limit pending intents, oldest first.

        Args:
            limit: Batch size (defaults to NOTIFY_BATCH_SIZE)

        Returns:
            DispatchResult with sent / failed counts and what is still pending
        """
        limit = limit or settings.NOTIFY_BATCH_SIZE
        result = DispatchResult()

        for intent in self.outbox.list_pending(limit=limit, max_attempts=self.max_attempts):
            try:
                self.notifier.send(intent)
            except NotifierError as e:
                give_up = intent.attempts + 1 >= self.max_attempts
                self.outbox.mark_failed(intent.id, str(e), give_up=give_up)
                result.failed += 1
                logger.warning(
                    "notification_failed",
                    notification_id=intent.id,
                    user_id=intent.user_id,
                    attempts=intent.attempts + 1,
                    give_up=give_up,
                    error=str(e),
                )
                continue
            self.outbox.mark_sent(intent.id, datetime.now(timezone.utc))
            result.sent += 1

        result.remaining = self.outbox.count_pending(max_attempts=self.max_attempts)
        logger.info(
            "notifications_dispatched", sent=result.sent, failed=result.failed, remaining=result.remaining
        )
        return result
