# tests/core/test_alerts.py
"""Tests for webhook alerting."""

from typing import Any

import httpx
import pytest

from dbsync.core.alerts import MESSAGE_LIMIT, WebhookNotifier, truncate_message
from dbsync.core.config import AlertSettings


class TestTruncateMessage:
    def test_short_message_unchanged(self) -> None:
        assert truncate_message("hello") == "hello"

    def test_long_message_truncated_to_limit(self) -> None:
        result = truncate_message("x" * 5000)

        assert len(result) <= MESSAGE_LIMIT
        assert result.endswith("(truncated)")


class TestWebhookNotifier:
    def test_from_settings_without_url(self) -> None:
        assert WebhookNotifier.from_settings(AlertSettings()) is None

    def test_from_settings_with_url(self) -> None:
        notifier = WebhookNotifier.from_settings(AlertSettings(webhook_url="https://hooks.example/x"))

        assert isinstance(notifier, WebhookNotifier)

    def test_send_posts_payload(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[dict[str, Any]] = []

        def fake_post(url: str, **kwargs: Any) -> httpx.Response:
            calls.append({"url": url, **kwargs})
            return httpx.Response(204)

        monkeypatch.setattr(httpx, "post", fake_post)

        assert WebhookNotifier("https://hooks.example/x", timeout_seconds=3).send("orders failed")
        [call] = calls
        assert call["url"] == "https://hooks.example/x"
        assert call["json"] == {"content": "orders failed", "username": "dbsync"}
        assert call["timeout"] == 3

    def test_rejected_returns_false(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(httpx, "post", lambda url, **kwargs: httpx.Response(400, text="bad"))

        assert WebhookNotifier("https://hooks.example/x").send("hi") is False

    def test_transport_error_returns_false(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_post(url: str, **kwargs: Any) -> httpx.Response:
            raise httpx.ConnectError("refused")

        monkeypatch.setattr(httpx, "post", fake_post)

        assert WebhookNotifier("https://hooks.example/x").send("hi") is False
