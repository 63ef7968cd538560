"""Outbound webhook notifiers for Interested leads."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
from loguru import logger

from onebox.domain.models import LeadNotification


class WebhookNotifier(ABC):
    """Base class: POST a JSON payload to a configured URL.

    Returns True on a 2xx response. Missing URL, non-2xx responses, timeouts
    and transport errors are logged and reported as False.
    """

    name = "webhook"

    def __init__(
        self,
        url: str | None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    @abstractmethod
    def build_payload(self, notification: LeadNotification) -> dict[str, Any]:
        ...

    def notify(self, notification: LeadNotification) -> bool:
        if not self.url:
            logger.info(f"{self.name} URL not configured, skipping notification")
            return False

        payload = self.build_payload(notification)

        try:
            with httpx.Client(transport=self._transport) as client:
                response = client.post(
                    self.url,
                    headers={"Content-Type": "application/json"},
                    json=payload,
                    timeout=self.timeout,
                )

                if response.is_success:
                    logger.info(f"{self.name} notification sent for: {notification.subject[:50]}")
                    return True
                else:
                    error_text = response.text
                    logger.error(f"{self.name} notification failed {response.status_code}: {error_text[:200]}")
                    return False

        except httpx.TimeoutException:
            logger.error(f"{self.name} notification timed out for: {notification.subject[:50]}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"{self.name} notification error: {e}")
            return False


class SlackNotifier(WebhookNotifier):
    """Slack incoming-webhook message with header, fields and a body preview."""

    name = "slack"

    def build_payload(self, notification: LeadNotification) -> dict[str, Any]:
        return {
            "text": "New Interested Lead Detected!",
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": "New Interested Lead!"},
                },
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*From:*\n{notification.sender}"},
                        {"type": "mrkdwn", "text": f"*Account:*\n{notification.account_id}"},
                        {"type": "mrkdwn", "text": f"*Subject:*\n{notification.subject}"},
                        {"type": "mrkdwn", "text": f"*Date:*\n{notification.date.isoformat()}"},
                    ],
                },
                {
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": f"*Preview:*\n{notification.preview(200)}"},
                },
            ],
        }


class GenericWebhookNotifier(WebhookNotifier):
    """Plain JSON event for any webhook consumer (webhook.site, Zapier, ...)."""

    name = "generic_webhook"

    def build_payload(self, notification: LeadNotification) -> dict[str, Any]:
        return {
            "event": "InterestedLead",
            "email": {
                "subject": notification.subject,
                "from": notification.sender,
                "accountId": notification.account_id,
                "category": notification.category.value,
                "date": notification.date.isoformat(),
                "documentId": notification.document_id,
                "bodyPreview": notification.body[:500],
            },
            "timestamp": notification.created_at.isoformat(),
        }
