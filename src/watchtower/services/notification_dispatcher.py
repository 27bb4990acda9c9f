"""Fire-and-forget delivery of notifications, decoupled from request handling."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from watchtower.plugins.contracts.notifier import NotifierPlugin

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Schedules each notification as its own task.

    A failing notifier is logged and never reaches the caller. Tasks are
    referenced until done so they are not garbage-collected mid-flight.
    """

    def __init__(self, notifier: NotifierPlugin) -> None:
        self._notifier = notifier
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Number of notifications still in flight."""
        return len(self._tasks)

    def new_request(self, device_name: str, url: str) -> None:
        """Announce a new access request."""
        self._spawn(self._notifier.notify_new_request(device_name, url), "new request")

    def device_status(self, device_name: str, status: str) -> None:
        """Announce a device status transition."""
        self._spawn(
            self._notifier.notify_device_status(device_name, status), "device status",
        )

    def _spawn(self, coro: Coroutine[Any, Any, None], kind: str) -> None:
        task = asyncio.get_running_loop().create_task(self._guard(coro, kind))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _guard(coro: Coroutine[Any, Any, None], kind: str) -> None:
        try:
            await coro
        except Exception:
            logger.exception("Failed to deliver %s notification", kind)

    async def drain(self) -> None:
        """Wait for in-flight notifications. Called on shutdown."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
