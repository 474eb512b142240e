"""Webhook alerting for sync errors.

Posts a short message to a chat webhook (Discord/Slack compatible
``{"content": ...}`` payload). Delivery failures are logged, never raised:
alerting must not change the outcome of the run it reports on.
"""

from __future__ import annotations

import httpx
import structlog

from dbsync.core.config import AlertSettings

slog = structlog.get_logger(__name__)

# Discord rejects messages above 2000 characters
MESSAGE_LIMIT = 2000


def truncate_message(text: str, limit: int = MESSAGE_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 20] + "\n… (truncated)"


class WebhookNotifier:
    """Sends alert messages to a webhook URL."""

    def __init__(self, webhook_url: str, *, timeout_seconds: float = 10.0, username: str = "dbsync") -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout_seconds
        self._username = username

    @classmethod
    def from_settings(cls, settings: AlertSettings) -> WebhookNotifier | None:
        """Build a notifier, or None when no webhook is configured."""
        if not settings.webhook_url:
            return None
        return cls(settings.webhook_url, timeout_seconds=settings.timeout_seconds)

    def send(self, message: str) -> bool:
        """Post message. Returns True when the webhook accepted it."""
        payload = {"content": truncate_message(message), "username": self._username}
        try:
            response = httpx.post(self._webhook_url, json=payload, timeout=self._timeout)
        except httpx.HTTPError as e:
            slog.warning("alert_delivery_failed", error=str(e))
            return False

        if response.is_success:
            return True
        slog.warning("alert_rejected", status_code=response.status_code, body=response.text[:500])
        return False
