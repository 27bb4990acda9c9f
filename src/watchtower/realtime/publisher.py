"""Builds pattern snapshots and pushes them through the hub."""

from __future__ import annotations

import json
import logging
from typing import Any

from watchtower.realtime.hub import ConnectionHub
from watchtower.realtime.session import LiveSession
from watchtower.services.pattern_service import PatternService

logger = logging.getLogger(__name__)

PATTERNS_UPDATED = "patterns_updated"


class SnapshotPublisher:
    """Reads the device's current snapshot from the store on every push."""

    def __init__(self, hub: ConnectionHub, pattern_service: PatternService) -> None:
        self._hub = hub
        self._patterns = pattern_service

    async def snapshot_message(self, device_id: str) -> dict[str, Any]:
        """The ``patterns_updated`` message for a device."""
        patterns = await self._patterns.snapshot(device_id)
        return {"type": PATTERNS_UPDATED, "data": {"patterns": patterns}}

    async def publish(self, device_id: str) -> int:
        """Push a fresh snapshot to all of a device's sessions.

        Failures are logged; the caller's mutation has already committed.

        Returns:
            Number of sessions the snapshot was queued to.
        """
        if not self._hub.is_device_connected(device_id):
            return 0
        try:
            message = await self.snapshot_message(device_id)
        except Exception:
            logger.exception("Failed to build snapshot for device %s", device_id)
            return 0
        return self._hub.send_to_device(device_id, message)

    async def send_initial(self, session: LiveSession) -> bool:
        """Queue the current snapshot to a newly registered session only."""
        message = await self.snapshot_message(session.device_id)
        return session.offer(json.dumps(message))
