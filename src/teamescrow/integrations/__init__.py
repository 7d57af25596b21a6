"""External collaborators: the User Directory and the Notification Service."""

from teamescrow.integrations.directory import SqlUserDirectory, UserDirectory, UserProfile
from teamescrow.integrations.notifications import (
    BackgroundNotifier,
    LoggingNotifier,
    Notification,
    NotificationEvent,
    Notifier,
    Outbox,
    WebhookNotifier,
    build_notifier,
)

__all__ = [
    "UserDirectory",
    "SqlUserDirectory",
    "UserProfile",
    "Notifier",
    "Notification",
    "NotificationEvent",
    "LoggingNotifier",
    "BackgroundNotifier",
    "WebhookNotifier",
    "Outbox",
    "build_notifier",
]
