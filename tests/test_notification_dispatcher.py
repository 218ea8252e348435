# tests/test_notification_dispatcher.py

"""
Notification Dispatcher Tests - outbox drain, retry bookkeeping, webhook delivery
"""

import json
from decimal import Decimal

import httpx
import pytest

from hrm_kpi.config import settings
from hrm_kpi.models.enumerations import NotificationStatus, NotificationType, Tier
from hrm_kpi.services import notification_templates
from hrm_kpi.services.notification_dispatcher import (
    LogNotifier,
    NotifierError,
    WebhookNotifier,
    build_notifier,
)


@pytest.fixture
def queued(repos):
    intents = [
        notification_templates.missed_marking("M1", "2025-06-06", 2),
        notification_templates.month_result_ready("S1", "2025-06", Tier.BONUS, Decimal("92.5")),
    ]
    repos.outbox.enqueue_many(intents)
    return intents


class TestDispatchPending:

    def test_sends_every_pending_intent(self, dispatcher, notifier, queued, store):
        result = dispatcher.dispatch_pending()

        assert result.sent == 2
        assert result.failed == 0
        assert result.remaining == 0
        assert notifier.send.call_count == 2
        assert all(i.status == NotificationStatus.SENT for i in store.outbox)
        assert all(i.dispatched_at is not None for i in store.outbox)

    def test_sent_intents_are_not_resent(self, dispatcher, notifier, queued):
        dispatcher.dispatch_pending()
        result = dispatcher.dispatch_pending()
        assert result.sent == 0
        assert notifier.send.call_count == 2

    def test_limit(self, dispatcher, queued):
        result = dispatcher.dispatch_pending(limit=1)
        assert result.sent == 1
        assert result.remaining == 1

    def test_failure_is_recorded_and_retried(self, dispatcher, notifier, queued, store):
        notifier.send.side_effect = NotifierError("webhook down")

        result = dispatcher.dispatch_pending()
        assert result.failed == 2
        assert result.remaining == 2
        assert all(i.status == NotificationStatus.PENDING for i in store.outbox)
        assert all(i.attempts == 1 for i in store.outbox)
        assert store.outbox[0].last_error == "webhook down"

    def test_gives_up_after_max_attempts(self, dispatcher, notifier, queued, store):
        notifier.send.side_effect = NotifierError("webhook down")
        for _ in range(3):
            dispatcher.dispatch_pending()

        assert all(i.status == NotificationStatus.FAILED for i in store.outbox)
        assert all(i.attempts == 3 for i in store.outbox)
        assert dispatcher.dispatch_pending().remaining == 0
        assert notifier.send.call_count == 6

    def test_one_failure_does_not_block_the_rest(self, dispatcher, notifier, queued, store):
        notifier.send.side_effect = [NotifierError("boom"), None]
        result = dispatcher.dispatch_pending()
        assert result.sent == 1
        assert result.failed == 1

    def test_unexpected_error_propagates(self, dispatcher, notifier, queued):
        notifier.send.side_effect = RuntimeError("bug")
        with pytest.raises(RuntimeError):
            dispatcher.dispatch_pending()


class TestTemplates:

    def test_pending_marking(self):
        intent = notification_templates.pending_marking("M1", "2025-06-06", 3)
        assert intent.type == NotificationType.ADMIN_PENDING_MARKING
        assert intent.message == (
            "You have 3 pending marking(s) for week 2025-06-06. Please submit before Friday end."
        )
        assert intent.link == "/dashboard/hrm/admin/marking"

    def test_month_result_ready(self):
        intent = notification_templates.month_result_ready("S2", "2025-06", Tier.FINE, Decimal("55"))
        assert intent.message == "Your 2025-06 results are ready! ⚠️ Tier: FINE | Score: 55.00"
        assert intent.link == "/dashboard/hrm/employee"


class TestWebhookNotifier:

    def _notifier(self, handler):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return WebhookNotifier("https://hooks.example.test/hrm", client=client)

    def test_posts_intent_json(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        intent = notification_templates.missed_marking("M1", "2025-06-06", 1)
        self._notifier(handler).send(intent)

        [request] = seen
        assert request.method == "POST"
        body = json.loads(request.content)
        assert body["id"] == intent.id
        assert body["user_id"] == "M1"
        assert body["type"] == "ADMIN_MISSED_MARKING"
        assert "status" not in body

    def test_error_status_raises(self):
        notifier = self._notifier(lambda request: httpx.Response(500, text="upstream broke"))
        with pytest.raises(NotifierError, match="500"):
            notifier.send(notification_templates.missed_marking("M1", "2025-06-06", 1))

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NotifierError, match="request failed"):
            self._notifier(handler).send(notification_templates.missed_marking("M1", "2025-06-06", 1))


class TestBuildNotifier:

    def test_log_notifier_without_webhook(self, monkeypatch):
        monkeypatch.setattr(settings, "NOTIFY_WEBHOOK_URL", None)
        assert isinstance(build_notifier(), LogNotifier)

    def test_webhook_when_configured(self, monkeypatch):
        monkeypatch.setattr(settings, "NOTIFY_WEBHOOK_URL", "https://hooks.example.test/hrm")
        notifier = build_notifier()
        assert isinstance(notifier, WebhookNotifier)
        notifier.close()
