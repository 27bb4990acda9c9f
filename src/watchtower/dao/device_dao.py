"""Data access for Device rows."""

from __future__ import annotations

from datetime import datetime
from typing import Any, cast

from sqlalchemy import CursorResult, delete, select, update

from watchtower.dao.base import BaseDAO
from watchtower.models.device import (
    DEVICE_ACTIVE,
    DEVICE_INACTIVE,
    DEVICE_UNINSTALLED,
    AccessRequest,
    Device,
    Pattern,
)


class DeviceDAO(BaseDAO):
    """Device registry queries."""

    async def create_device(
        self, *, name: str, token_hash: str, last_seen_at: datetime,
    ) -> Device:
        """Insert a new device and flush to populate its id."""
        device = Device(name=name, token_hash=token_hash, last_seen_at=last_seen_at)
        self._conn().add(device)
        await self._conn().flush()
        return device

    async def find_by_id(self, device_id: str) -> Device | None:
        """Find a device by primary key."""
        result = await self._conn().execute(
            select(Device).where(Device.id == device_id)
        )
        return result.scalar_one_or_none()

    async def find_by_token_hash(self, token_hash: str) -> Device | None:
        """Find a device by the SHA-256 hash of its bearer token."""
        result = await self._conn().execute(
            select(Device).where(Device.token_hash == token_hash)
        )
        return result.scalar_one_or_none()

    async def list_devices(self) -> list[Device]:
        """Return all devices, newest first."""
        result = await self._conn().execute(
            select(Device).order_by(Device.created_at.desc())
        )
        return list(result.scalars())

    async def list_by_status(self, status: str) -> list[Device]:
        """Return all devices currently in the given status."""
        result = await self._conn().execute(
            select(Device).where(Device.status == status)
        )
        return list(result.scalars())

    async def set_token_hash(self, device_id: str, token_hash: str) -> None:
        """Replace a device's token hash. The old token stops working at commit."""
        await self._conn().execute(
            update(Device).where(Device.id == device_id).values(token_hash=token_hash)
        )

    async def touch(self, device_id: str, now: datetime) -> None:
        """Refresh last_seen_at; revive to active unless uninstalled."""
        await self._conn().execute(
            update(Device).where(Device.id == device_id).values(last_seen_at=now)
        )
        await self._conn().execute(
            update(Device)
            .where(Device.id == device_id, Device.status != DEVICE_UNINSTALLED)
            .values(status=DEVICE_ACTIVE)
        )

    async def set_status(self, device_id: str, status: str) -> None:
        """Move a device to ``status`` unconditionally."""
        await self._conn().execute(
            update(Device).where(Device.id == device_id).values(status=status)
        )

    async def deactivate_if_unseen(
        self, device_id: str, last_seen_at: datetime | None,
    ) -> bool:
        """Mark an active device inactive unless it was seen after ``last_seen_at``.

        ``last_seen_at`` is the value read by the caller; a heartbeat that
        lands in between changes it and the row is left alone.

        Returns:
            True when this statement made the transition.
        """
        if last_seen_at is None:
            unseen = Device.last_seen_at.is_(None)
        else:
            unseen = Device.last_seen_at == last_seen_at
        result = await self._conn().execute(
            update(Device)
            .where(Device.id == device_id, Device.status == DEVICE_ACTIVE, unseen)
            .values(status=DEVICE_INACTIVE)
        )
        return cast(CursorResult[Any], result).rowcount > 0

    async def delete_device(self, device_id: str) -> None:
        """Delete a device together with its patterns and access requests."""
        await self._conn().execute(delete(Pattern).where(Pattern.device_id == device_id))
        await self._conn().execute(
            delete(AccessRequest).where(AccessRequest.device_id == device_id)
        )
        await self._conn().execute(delete(Device).where(Device.id == device_id))
