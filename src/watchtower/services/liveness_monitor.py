"""Background loop that runs the liveness sweep on a fixed interval."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from watchtower.models.device import DEVICE_INACTIVE
from watchtower.services.liveness_service import LivenessService
from watchtower.services.notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


class LivenessMonitor:
    """Sweeps once at start, then every ``interval_seconds``.

    A failed sweep is logged and the loop carries on with the next tick.
    """

    def __init__(
        self,
        liveness: LivenessService,
        dispatcher: NotificationDispatcher,
        *,
        interval_seconds: float = 60,
    ) -> None:
        self._liveness = liveness
        self._dispatcher = dispatcher
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> list[str]:
        """Run one sweep and notify for each device that went inactive."""
        try:
            names = await self._liveness.sweep()
        except Exception:
            logger.exception("Liveness sweep failed")
            return []
        for name in names:
            self._dispatcher.device_status(name, DEVICE_INACTIVE)
        return names

    async def _run(self) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        """Start the background loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Liveness monitor started (every %ss)", self._interval)

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
