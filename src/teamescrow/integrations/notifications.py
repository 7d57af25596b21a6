"""Notification Service collaborator.

Notifications are fire-and-forget. The engine queues them in an Outbox while
a transaction is open and delivers them only after it commits; a delivery
failure is logged and never undoes, or is mistaken for, the monetary
operation that triggered it.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

import httpx

from teamescrow.config import NotificationConfig
from teamescrow.logging import get_logger

logger = get_logger(__name__)


class NotificationEvent(str, Enum):
    """Types of events sent to users."""

    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    PROJECT_STATUS_CHANGED = "project_status_changed"
    PROJECT_LAUNCHED = "project_launched"
    FUNDS_ADDED = "funds_added"
    REFUND_ISSUED = "refund_issued"
    TEAM_INVITATION = "team_invitation"
    INVITATION_EXPIRED = "invitation_expired"
    INVITATION_ACCEPTED = "invitation_accepted"
    INVITATION_DECLINED = "invitation_declined"
    TEAM_READY = "team_ready"
    MEMBER_REMOVED = "member_removed"
    TASK_ASSIGNED = "task_assigned"
    TASK_SUBMITTED = "task_submitted"
    TASK_REVISION = "task_revision"
    TASK_APPROVED = "task_approved"
    TASK_CANCELLED = "task_cancelled"
    PAYOUT_CREATED = "payout_created"
    PAYOUT_RELEASED = "payout_released"
    PAYOUT_CANCELLED = "payout_cancelled"


@dataclass
class Notification:
    """A single event addressed to one user."""

    user_id: uuid.UUID
    event_type: NotificationEvent
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for JSON serialization."""
        return {
            "user_id": str(self.user_id),
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "payload": {k: _jsonable(v) for k, v in self.payload.items()},
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


class Notifier(Protocol):
    """Delivers a notification to its recipient."""

    async def notify(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Notifier that only records events in the structured log."""

    async def notify(self, notification: Notification) -> None:
        logger.info(
            "notification",
            user_id=str(notification.user_id),
            event_type=notification.event_type.value,
        )


class WebhookNotifier:
    """Notifier that POSTs each event as JSON to a webhook endpoint."""

    def __init__(self, config: NotificationConfig) -> None:
        if not config.webhook_url:
            raise ValueError("WebhookNotifier requires notifications.webhook_url")
        self.config = config
        self.logger = get_logger(__name__)
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def notify(self, notification: Notification) -> None:
        """Send the event to the webhook.

        Raises:
            httpx.HTTPError: On transport errors or non-2xx responses.
        """
        client = await self._get_client()
        headers = {"Content-Type": "application/json"}
        if self.config.auth_header:
            headers["Authorization"] = self.config.auth_header

        response = await client.post(
            self.config.webhook_url,
            json=notification.to_dict(),
            headers=headers,
        )
        response.raise_for_status()

        self.logger.info(
            "webhook_notification_sent",
            event_type=notification.event_type.value,
            status_code=response.status_code,
        )


class BackgroundNotifier:
    """Delivers through another notifier without making the caller wait.

    Each notification is handed to its own task, so a slow endpoint never
    holds up the request that triggered it. Failures are logged. ``close``
    waits for deliveries still in flight before closing the inner notifier.
    """

    def __init__(self, inner: Notifier) -> None:
        self.inner = inner
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def notify(self, notification: Notification) -> None:
        task = asyncio.create_task(self._deliver(notification))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, notification: Notification) -> None:
        try:
            await self.inner.notify(notification)
        except Exception as e:
            logger.warning(
                "notification_failed",
                user_id=str(notification.user_id),
                event_type=notification.event_type.value,
                error=str(e),
            )

    async def drain(self) -> None:
        """Wait until every delivery handed off so far has finished."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        close = getattr(self.inner, "close", None)
        if close is not None:
            await close()


def build_notifier(config: NotificationConfig) -> LoggingNotifier | BackgroundNotifier:
    """Pick the webhook notifier when a URL is configured, else log only.

    Webhook deliveries run in the background.
    """
    if config.webhook_url:
        return BackgroundNotifier(WebhookNotifier(config))
    return LoggingNotifier()


class Outbox:
    """Notifications queued during a transaction, delivered after commit."""

    def __init__(self) -> None:
        self._pending: list[Notification] = []

    def add(
        self,
        user_id: uuid.UUID,
        event_type: NotificationEvent,
        **payload: Any,
    ) -> None:
        self._pending.append(Notification(user_id, event_type, payload))

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> list[Notification]:
        return list(self._pending)

    async def flush(self, notifier: Notifier) -> int:
        """Deliver every queued notification.

        Failures are logged per notification and do not stop the rest.

        Returns:
            Number of notifications the notifier accepted.
        """
        pending, self._pending = self._pending, []
        delivered = 0
        for notification in pending:
            try:
                await notifier.notify(notification)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "notification_failed",
                    user_id=str(notification.user_id),
                    event_type=notification.event_type.value,
                    error=str(e),
                )
        return delivered
