"""Device liveness: heartbeats, the inactivity sweep, and uninstall signals.

State machine per device::

    active <-> inactive -> uninstalled

Heartbeats revive inactive devices. Uninstalled is terminal: a late
heartbeat still refreshes last-seen but never changes the status back.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from watchtower.dao.device_dao import DeviceDAO
from watchtower.models.device import DEVICE_ACTIVE, DEVICE_UNINSTALLED
from watchtower.utils.crypto import Crypto
from watchtower.utils.time import Time

logger = logging.getLogger(__name__)


class LivenessService:
    """Built once at startup with its DAO pre-wired.

    Every transition method reports only the devices that actually changed,
    so callers can notify exactly once per transition.
    """

    def __init__(self, device_dao: DeviceDAO, *, threshold_seconds: int = 120) -> None:
        self._dao = device_dao
        self._threshold = timedelta(seconds=threshold_seconds)

    async def record_heartbeat(self, device_id: str) -> None:
        """Refresh last-seen and revive the device unless it is uninstalled."""
        async with self._dao.transaction():
            await self._dao.touch(device_id, Time.utcnow())
            await self._dao.commit()

    async def sweep(self) -> list[str]:
        """Move silent active devices to inactive.

        Returns:
            Names of devices that went inactive on this sweep.
        """
        cutoff = Time.utcnow() - self._threshold
        async with self._dao.transaction():
            active = await self._dao.list_by_status(DEVICE_ACTIVE)
            stale = [
                device for device in active
                if device.last_seen_at is None
                or Time.ensure_utc(device.last_seen_at) < cutoff
            ]
            changed = [
                device.name for device in stale
                if await self._dao.deactivate_if_unseen(device.id, device.last_seen_at)
            ]
            await self._dao.commit()
        if changed:
            logger.info("Marked %d devices as inactive", len(changed))
        return changed

    async def mark_uninstalled(self, token: str) -> str | None:
        """Apply an uninstall signal for the device holding ``token``.

        Unknown tokens are ignored. Repeated signals are no-ops.

        Returns:
            The device name when this call made the transition, else None.
        """
        if not token:
            return None
        async with self._dao.transaction():
            device = await self._dao.find_by_token_hash(Crypto.hash_key(token))
            if device is None or device.status == DEVICE_UNINSTALLED:
                return None
            await self._dao.set_status(device.id, DEVICE_UNINSTALLED)
            await self._dao.commit()
        logger.info("Device %s (%s) marked as uninstalled", device.id, device.name)
        return device.name
