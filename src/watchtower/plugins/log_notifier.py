"""Log-only notifier: builds push payloads and logs one line per subscription."""

from __future__ import annotations

import json
import logging

from watchtower.plugins.contracts.notifier import NotifierPlugin
from watchtower.services.user_service import UserService

logger = logging.getLogger(__name__)

_MAX_URL_LENGTH = 50


def truncate_url(url: str) -> str:
    """Shorten a URL for a notification body."""
    if len(url) > _MAX_URL_LENGTH:
        return url[:_MAX_URL_LENGTH - 3] + "..."
    return url


def new_request_payload(device_name: str, url: str) -> dict[str, str]:
    """Push payload for a new access request."""
    return {
        "title": "New Access Request",
        "body": f"{device_name} is requesting access to {truncate_url(url)}",
        "icon": "/admin/icon-192.png",
        "url": "/admin/#requests",
        "tag": "new-request",
        "type": "new_request",
    }


def device_status_payload(device_name: str, status: str) -> dict[str, str]:
    """Push payload for a device status transition."""
    if status == "inactive":
        body = f"{device_name} has gone inactive (no heartbeat)"
    elif status == "uninstalled":
        body = f"{device_name} extension has been uninstalled"
    else:
        body = f"{device_name} status changed to {status}"
    return {
        "title": "Device Status Change",
        "body": body,
        "icon": "/admin/icon-192.png",
        "url": "/admin/#devices",
        "tag": f"device-status-{device_name}",
        "type": "device_status",
    }


class LogNotifierPlugin(NotifierPlugin):
    """Resolve opted-in admins and log the payload for each push endpoint.

    Web-push encryption and delivery live outside this service; this
    plugin records what would be sent.
    """

    def __init__(self, user_service: UserService) -> None:
        self._users = user_service

    async def notify_new_request(self, device_name: str, url: str) -> None:
        await self._deliver(new_request_payload(device_name, url), new_requests=True)

    async def notify_device_status(self, device_name: str, status: str) -> None:
        await self._deliver(
            device_status_payload(device_name, status), new_requests=False,
        )

    async def _deliver(self, payload: dict[str, str], *, new_requests: bool) -> int:
        """Log the payload once per subscription. Returns the delivery count."""
        body = json.dumps(payload)
        count = 0
        for user, subscriptions in await self._users.recipients(new_requests=new_requests):
            for subscription in subscriptions:
                logger.info(
                    "push to %s (%s): %s", user.username, subscription.endpoint, body,
                )
                count += 1
        return count
