"""Business logic for per-device allow/deny patterns."""

from __future__ import annotations

from datetime import datetime

from watchtower.dao.device_dao import DeviceDAO
from watchtower.dao.pattern_dao import PatternDAO
from watchtower.matching import Decision, evaluate
from watchtower.models.device import PATTERN_ALLOW, PATTERN_DENY, PATTERN_TYPES, Pattern
from watchtower.utils.duration import Expiry
from watchtower.utils.time import Time


def pattern_to_dict(pattern: Pattern) -> dict[str, object]:
    """Serialize a pattern row for the admin API and device snapshots."""
    return {
        "id": pattern.id,
        "device_id": pattern.device_id,
        "pattern": pattern.pattern,
        "type": pattern.type,
        "enabled": pattern.enabled,
        "expires_at": Time.isoformat(pattern.expires_at),
        "created_at": Time.isoformat(pattern.created_at),
    }


def is_live(pattern: Pattern, now: datetime) -> bool:
    """True if the pattern is enabled and not past its expiry."""
    if not pattern.enabled:
        return False
    return pattern.expires_at is None or Time.ensure_utc(pattern.expires_at) > now


def validate_pattern(text: str, pattern_type: str) -> str:
    """Normalize and validate pattern text and type.

    Raises:
        ValueError: If the text is empty or the type is unknown.
    """
    text = text.strip()
    if not text:
        raise ValueError("Pattern is required")
    if pattern_type not in PATTERN_TYPES:
        raise ValueError(f"Invalid pattern type: {pattern_type}")
    return text


class PatternService:
    """Built once at startup with its DAOs pre-wired.

    Expired and disabled patterns are kept in the store and filtered
    at read time.
    """

    def __init__(self, pattern_dao: PatternDAO, device_dao: DeviceDAO) -> None:
        self._dao = pattern_dao
        self._devices = device_dao

    async def snapshot(self, device_id: str) -> list[dict[str, object]]:
        """Enabled, unexpired patterns for a device, newest first."""
        now = Time.utcnow()
        async with self._dao.transaction():
            rows = await self._dao.list_enabled_for_device(device_id)
        return [pattern_to_dict(row) for row in rows if is_live(row, now)]

    async def check(self, device_id: str, url: str) -> Decision:
        """Evaluate a URL against the device's current snapshot."""
        patterns = await self.snapshot(device_id)
        allow = [str(p["pattern"]) for p in patterns if p["type"] == PATTERN_ALLOW]
        deny = [str(p["pattern"]) for p in patterns if p["type"] == PATTERN_DENY]
        return evaluate(url, allow=allow, deny=deny)

    async def list_all(self) -> list[dict[str, object]]:
        """Every pattern across devices, deny first, newest first."""
        async with self._dao.transaction():
            rows = await self._dao.list_all()
        return [pattern_to_dict(row) for row in rows]

    async def create_pattern(
        self, device_id: str, text: str, pattern_type: str, expiry: Expiry,
    ) -> dict[str, object]:
        """Create an enabled pattern for a device.

        Raises:
            ValueError: If the device does not exist or the input is invalid.
        """
        text = validate_pattern(text, pattern_type)
        now = Time.utcnow()
        async with self._dao.transaction():
            if await self._devices.find_by_id(device_id) is None:
                raise ValueError("Device not found")
            row = await self._dao.create_pattern(
                device_id=device_id,
                pattern=text,
                pattern_type=pattern_type,
                expires_at=expiry.expires_at(now),
                created_at=now,
            )
            await self._dao.commit()
        return pattern_to_dict(row)

    async def update_pattern(
        self, pattern_id: str, text: str, pattern_type: str, expiry: Expiry,
    ) -> dict[str, object]:
        """Replace text, type and expiry of an existing pattern in place.

        Raises:
            ValueError: If the pattern does not exist or the input is invalid.
        """
        text = validate_pattern(text, pattern_type)
        async with self._dao.transaction():
            row = await self._dao.find_by_id(pattern_id)
            if row is None:
                raise ValueError("Pattern not found")
            row.pattern = text
            row.type = pattern_type
            row.expires_at = expiry.expires_at()
            await self._dao.commit()
        return pattern_to_dict(row)

    async def set_enabled(self, pattern_id: str, enabled: bool) -> dict[str, object]:
        """Enable or disable a pattern.

        Raises:
            ValueError: If the pattern does not exist.
        """
        async with self._dao.transaction():
            row = await self._dao.find_by_id(pattern_id)
            if row is None:
                raise ValueError("Pattern not found")
            row.enabled = enabled
            await self._dao.commit()
        return pattern_to_dict(row)

    async def delete_pattern(self, pattern_id: str) -> str:
        """Delete a pattern and return the owning device id.

        Raises:
            ValueError: If the pattern does not exist.
        """
        async with self._dao.transaction():
            row = await self._dao.find_by_id(pattern_id)
            if row is None:
                raise ValueError("Pattern not found")
            device_id = row.device_id
            await self._dao.delete_pattern(pattern_id)
            await self._dao.commit()
        return device_id
