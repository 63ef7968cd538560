"""Notification sinks for positive-signal emails."""

from onebox.infrastructure.notifications.webhooks import (
    GenericWebhookNotifier,
    SlackNotifier,
    WebhookNotifier,
)

__all__ = [
    "WebhookNotifier",
    "SlackNotifier",
    "GenericWebhookNotifier",
]
