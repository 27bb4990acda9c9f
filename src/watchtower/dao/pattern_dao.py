"""Data access for Pattern rows."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, delete, select

from watchtower.dao.base import BaseDAO
from watchtower.models.device import PATTERN_DENY, Pattern


class PatternDAO(BaseDAO):
    """Pattern queries. Expiry filtering happens in the service layer."""

    async def create_pattern(
        self,
        *,
        device_id: str,
        pattern: str,
        pattern_type: str,
        expires_at: datetime | None,
        created_at: datetime,
    ) -> Pattern:
        """Insert a new enabled pattern and flush to populate its id."""
        row = Pattern(
            device_id=device_id,
            pattern=pattern,
            type=pattern_type,
            enabled=True,
            expires_at=expires_at,
            created_at=created_at,
        )
        self._conn().add(row)
        await self._conn().flush()
        return row

    async def find_by_id(self, pattern_id: str) -> Pattern | None:
        """Find a pattern by primary key."""
        result = await self._conn().execute(
            select(Pattern).where(Pattern.id == pattern_id)
        )
        return result.scalar_one_or_none()

    async def list_enabled_for_device(self, device_id: str) -> list[Pattern]:
        """Enabled patterns for a device, newest first (expired rows included)."""
        result = await self._conn().execute(
            select(Pattern)
            .where(Pattern.device_id == device_id, Pattern.enabled == True)  # noqa: E712
            .order_by(Pattern.created_at.desc())
        )
        return list(result.scalars())

    async def list_all(self) -> list[Pattern]:
        """Every pattern, deny rules first, newest first within each type."""
        deny_first = case((Pattern.type == PATTERN_DENY, 0), else_=1)
        result = await self._conn().execute(
            select(Pattern).order_by(deny_first, Pattern.created_at.desc())
        )
        return list(result.scalars())

    async def delete_pattern(self, pattern_id: str) -> None:
        """Delete a pattern row."""
        await self._conn().execute(delete(Pattern).where(Pattern.id == pattern_id))
