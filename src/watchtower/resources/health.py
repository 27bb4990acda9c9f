"""Health resource: liveness of the hub actor and the store."""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from watchtower.realtime.hub import ConnectionHub

logger = logging.getLogger(__name__)


class HealthResource:
    """Reports ``ok`` only when the hub is running and the store answers."""

    def __init__(self, *, hub: ConnectionHub, pool: async_sessionmaker[AsyncSession]) -> None:
        self._hub = hub
        self._pool = pool

    async def _store_reachable(self) -> bool:
        try:
            async with self._pool() as connection:
                await connection.execute(text("SELECT 1"))
        except SQLAlchemyError as error:
            logger.warning("Health probe could not reach the store: %s", error)
            return False
        return True

    async def check(self) -> dict[str, object]:
        """``{"status": "ok"}`` or a degraded report naming the failing part."""
        hub_ok = self._hub.running
        store_ok = await self._store_reachable()
        if hub_ok and store_ok:
            return {"status": "ok"}
        return {"status": "degraded", "hub": hub_ok, "database": store_ok}
