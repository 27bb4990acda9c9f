"""Tests for notification payloads, the log notifier, and the dispatcher."""

from __future__ import annotations

import json
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from watchtower.plugins.log_notifier import (
    LogNotifierPlugin,
    device_status_payload,
    new_request_payload,
    truncate_url,
)
from watchtower.services.notification_dispatcher import NotificationDispatcher


def test_truncate_url() -> None:
    """Long URLs are cut to 47 characters plus an ellipsis."""
    short = "https://example.com/"
    assert truncate_url(short) == short
    long = "https://example.com/" + "a" * 60
    assert truncate_url(long) == long[:47] + "..."
    assert len(truncate_url(long)) == 50


def test_new_request_payload() -> None:
    payload = new_request_payload("kitchen-laptop", "https://example.com/x")
    assert payload["title"] == "New Access Request"
    assert payload["body"] == "kitchen-laptop is requesting access to https://example.com/x"
    assert payload["url"] == "/admin/#requests"
    assert payload["tag"] == "new-request"


@pytest.mark.parametrize(
    ("status", "body"),
    [
        ("inactive", "tablet has gone inactive (no heartbeat)"),
        ("uninstalled", "tablet extension has been uninstalled"),
        ("active", "tablet status changed to active"),
    ],
)
def test_device_status_payload(status: str, body: str) -> None:
    payload = device_status_payload("tablet", status)
    assert payload["body"] == body
    assert payload["tag"] == "device-status-tablet"
    assert payload["type"] == "device_status"


@pytest.mark.asyncio
async def test_log_notifier_logs_per_subscription(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """One log line per push endpoint of each opted-in admin."""
    admin = SimpleNamespace(username="admin")
    subscriptions = [
        SimpleNamespace(endpoint="https://push.example/1"),
        SimpleNamespace(endpoint="https://push.example/2"),
    ]
    users = MagicMock()
    users.recipients = AsyncMock(return_value=[(admin, subscriptions)])
    notifier = LogNotifierPlugin(users)

    with caplog.at_level(logging.INFO, logger="watchtower.plugins.log_notifier"):
        await notifier.notify_new_request("laptop", "https://example.com")

    users.recipients.assert_awaited_once_with(new_requests=True)
    lines = [r.getMessage() for r in caplog.records if "push to admin" in r.getMessage()]
    assert len(lines) == 2
    body = json.loads(lines[0].split(": ", 1)[1])
    assert body["type"] == "new_request"


@pytest.mark.asyncio
async def test_log_notifier_uses_status_preference() -> None:
    """Status notifications go to admins opted into device status."""
    users = MagicMock()
    users.recipients = AsyncMock(return_value=[])
    await LogNotifierPlugin(users).notify_device_status("tablet", "inactive")
    users.recipients.assert_awaited_once_with(new_requests=False)


@pytest.mark.asyncio
async def test_dispatcher_delivers_in_background() -> None:
    """Calls return immediately; drain() waits for delivery."""
    notifier = MagicMock()
    notifier.notify_new_request = AsyncMock()
    notifier.notify_device_status = AsyncMock()
    dispatcher = NotificationDispatcher(notifier)

    dispatcher.new_request("laptop", "https://example.com")
    dispatcher.device_status("laptop", "inactive")
    assert dispatcher.pending == 2
    await dispatcher.drain()

    assert dispatcher.pending == 0
    notifier.notify_new_request.assert_awaited_once_with("laptop", "https://example.com")
    notifier.notify_device_status.assert_awaited_once_with("laptop", "inactive")


@pytest.mark.asyncio
async def test_dispatcher_logs_notifier_failure(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A failing notifier never reaches the caller."""
    notifier = MagicMock()
    notifier.notify_new_request = AsyncMock(side_effect=RuntimeError("push service down"))
    dispatcher = NotificationDispatcher(notifier)

    with caplog.at_level(logging.ERROR):
        dispatcher.new_request("laptop", "https://example.com")
        await dispatcher.drain()

    assert "Failed to deliver new request notification" in caplog.text
