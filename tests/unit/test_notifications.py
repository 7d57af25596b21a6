"""Unit tests for notification delivery."""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest
import respx

from teamescrow.config import NotificationConfig
from teamescrow.database.models import ProjectStatus
from teamescrow.integrations.notifications import (
    BackgroundNotifier,
    LoggingNotifier,
    Notification,
    NotificationEvent,
    Outbox,
    WebhookNotifier,
    build_notifier,
)

WEBHOOK_URL = "https://hooks.example.com/escrow"


class FlakyNotifier:
    """Notifier that fails for one recipient."""

    def __init__(self, failing_user: uuid.UUID) -> None:
        self.failing_user = failing_user
        self.delivered: list[Notification] = []

    async def notify(self, notification: Notification) -> None:
        if notification.user_id == self.failing_user:
            raise RuntimeError("mailbox full")
        self.delivered.append(notification)


def test_notification_to_dict() -> None:
    """Test that payload values are made JSON friendly."""
    user_id = uuid.uuid4()
    project_id = uuid.uuid4()
    when = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    notification = Notification(
        user_id,
        NotificationEvent.REFUND_ISSUED,
        {
            "project_id": project_id,
            "net": Decimal("490.00"),
            "status": ProjectStatus.completed,
            "tasks": [project_id],
            "at": when,
        },
        timestamp=when,
    )

    data = notification.to_dict()

    assert data == {
        "user_id": str(user_id),
        "event_type": "refund_issued",
        "timestamp": "2026-03-01T12:00:00+00:00",
        "payload": {
            "project_id": str(project_id),
            "net": "490.00",
            "status": "completed",
            "tasks": [str(project_id)],
            "at": "2026-03-01T12:00:00+00:00",
        },
    }


def test_build_notifier() -> None:
    """Test that a webhook URL selects the webhook notifier."""
    assert isinstance(build_notifier(NotificationConfig()), LoggingNotifier)
    notifier = build_notifier(NotificationConfig(webhook_url=WEBHOOK_URL))
    assert isinstance(notifier, BackgroundNotifier)
    assert isinstance(notifier.inner, WebhookNotifier)


def test_webhook_notifier_requires_url() -> None:
    with pytest.raises(ValueError, match="webhook_url"):
        WebhookNotifier(NotificationConfig())


@pytest.mark.asyncio
async def test_outbox_delivers_after_flush() -> None:
    """Test that queued notifications are delivered once and then cleared."""
    outbox = Outbox()
    first, second = uuid.uuid4(), uuid.uuid4()
    outbox.add(first, NotificationEvent.TASK_ASSIGNED, amount=Decimal("10"))
    outbox.add(second, NotificationEvent.TEAM_READY)
    notifier = FlakyNotifier(failing_user=uuid.uuid4())

    assert len(outbox) == 2
    assert [n.user_id for n in outbox.pending] == [first, second]

    delivered = await outbox.flush(notifier)

    assert delivered == 2
    assert len(outbox) == 0
    assert notifier.delivered[0].payload == {"amount": Decimal("10")}
    assert await outbox.flush(notifier) == 0


@pytest.mark.asyncio
async def test_outbox_failure_does_not_stop_the_rest() -> None:
    """Test that one failed delivery is logged and the others still go out."""
    outbox = Outbox()
    broken, ok = uuid.uuid4(), uuid.uuid4()
    outbox.add(broken, NotificationEvent.PAYOUT_RELEASED)
    outbox.add(ok, NotificationEvent.PAYOUT_RELEASED)
    notifier = FlakyNotifier(failing_user=broken)

    delivered = await outbox.flush(notifier)

    assert delivered == 1
    assert [n.user_id for n in notifier.delivered] == [ok]


@pytest.mark.asyncio
async def test_logging_notifier_accepts_everything() -> None:
    await LoggingNotifier().notify(Notification(uuid.uuid4(), NotificationEvent.FUNDS_ADDED))


@respx.mock
@pytest.mark.asyncio
async def test_webhook_notifier_posts_json() -> None:
    """Test that the webhook receives the event with the auth header."""
    route = respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(200))
    notifier = WebhookNotifier(
        NotificationConfig(webhook_url=WEBHOOK_URL, auth_header="Bearer secret")
    )
    user_id = uuid.uuid4()

    await notifier.notify(Notification(user_id, NotificationEvent.TEAM_INVITATION, {"role": "QA"}))
    await notifier.close()

    assert route.called
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer secret"
    body = request.read()
    assert b'"event_type":"team_invitation"' in body.replace(b" ", b"")
    assert str(user_id).encode() in body


@respx.mock
@pytest.mark.asyncio
async def test_webhook_notifier_raises_on_error_status() -> None:
    """Test that a non-2xx answer surfaces as an HTTP error."""
    respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(500, text="Internal Error"))
    notifier = WebhookNotifier(NotificationConfig(webhook_url=WEBHOOK_URL))

    with pytest.raises(httpx.HTTPStatusError):
        await notifier.notify(Notification(uuid.uuid4(), NotificationEvent.TASK_APPROVED))
    await notifier.close()


@respx.mock
@pytest.mark.asyncio
async def test_webhook_failure_is_contained_by_outbox() -> None:
    """Test that a connection failure during flush is swallowed and logged."""
    respx.post(WEBHOOK_URL).mock(side_effect=httpx.ConnectError("Connection failed"))
    notifier = WebhookNotifier(NotificationConfig(webhook_url=WEBHOOK_URL))
    outbox = Outbox()
    outbox.add(uuid.uuid4(), NotificationEvent.REFUND_ISSUED)

    assert await outbox.flush(notifier) == 0
    await notifier.close()


class SlowNotifier:
    """Notifier that blocks until released."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.delivered: list[Notification] = []

    async def notify(self, notification: Notification) -> None:
        await self.release.wait()
        self.delivered.append(notification)


class TestBackgroundNotifier:
    """Test that deliveries never hold up the operation that queued them."""

    @pytest.mark.asyncio
    async def test_flush_does_not_wait_for_slow_endpoint(self) -> None:
        """Test that flushing returns while the delivery is still pending."""
        slow = SlowNotifier()
        notifier = BackgroundNotifier(slow)
        outbox = Outbox()
        outbox.add(uuid.uuid4(), NotificationEvent.PAYOUT_RELEASED)

        assert await asyncio.wait_for(outbox.flush(notifier), timeout=1) == 1
        assert slow.delivered == []
        assert notifier.in_flight == 1

        slow.release.set()
        await notifier.drain()

        assert len(slow.delivered) == 1
        assert notifier.in_flight == 0

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self) -> None:
        """Test that a failed background delivery does not escape."""
        failing_user = uuid.uuid4()
        inner = FlakyNotifier(failing_user=failing_user)
        notifier = BackgroundNotifier(inner)

        await notifier.notify(Notification(failing_user, NotificationEvent.REFUND_ISSUED))
        await notifier.notify(Notification(uuid.uuid4(), NotificationEvent.REFUND_ISSUED))
        await notifier.close()

        assert len(inner.delivered) == 1
        assert notifier.in_flight == 0

    @respx.mock
    @pytest.mark.asyncio
    async def test_close_waits_for_webhook_posts(self) -> None:
        """Test that closing sends what is still in flight before the client closes."""
        route = respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(500))
        notifier = build_notifier(NotificationConfig(webhook_url=WEBHOOK_URL))
        outbox = Outbox()
        outbox.add(uuid.uuid4(), NotificationEvent.TASK_APPROVED)

        assert await outbox.flush(notifier) == 1
        await notifier.close()

        assert route.call_count == 1
