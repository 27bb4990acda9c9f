"""Agent-local pattern cache, persisted as JSON next to the agent."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Union

from watchtower.utils.time import Time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedPattern:
    """One snapshot entry. ``expires_at`` is None for permanent patterns."""

    pattern: str
    expires_at: datetime | None = None

    def expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def to_dict(self) -> dict[str, Any]:
        return {"pattern": self.pattern, "expires_at": Time.isoformat(self.expires_at)}

    @classmethod
    def from_value(cls, value: object) -> CachedPattern:
        """Accept a snapshot/persisted mapping or a bare pattern string."""
        if isinstance(value, CachedPattern):
            return value
        if isinstance(value, dict):
            return cls(str(value.get("pattern", "")), _parse_time(value.get("expires_at")))
        return cls(str(value))


Entries = Iterable[Union[CachedPattern, str]]


class PatternCache:
    """Last-known allow/deny lists plus sync and heartbeat timestamps.

    ``replace()`` swaps both lists wholesale; snapshots are never merged,
    and the last one to arrive wins. Expired entries stay stored but are
    left out of ``lists()``, since the server does not push on expiry.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._lock = asyncio.Lock()
        self._allow: list[CachedPattern] = []
        self._deny: list[CachedPattern] = []
        self.last_sync: datetime | None = None
        self.last_heartbeat: datetime | None = None

    @classmethod
    def load(cls, path: str | Path) -> PatternCache:
        """Read a cache file. A missing or unreadable file yields an empty cache."""
        cache = cls(path)
        target = Path(path)
        if not target.exists():
            return cache
        try:
            data = json.loads(target.read_text())
            cache._allow = [CachedPattern.from_value(p) for p in data.get("allow", [])]
            cache._deny = [CachedPattern.from_value(p) for p in data.get("deny", [])]
            cache.last_sync = _parse_time(data.get("last_sync"))
            cache.last_heartbeat = _parse_time(data.get("last_heartbeat"))
        except (OSError, ValueError, AttributeError, TypeError) as error:
            logger.warning("Ignoring unreadable cache %s: %s", target, error)
            return cls(path)
        return cache

    async def replace(
        self, allow: Entries, deny: Entries, *, received_at: datetime | None = None,
    ) -> None:
        """Replace both lists with a new snapshot."""
        async with self._lock:
            self._allow = [CachedPattern.from_value(p) for p in allow]
            self._deny = [CachedPattern.from_value(p) for p in deny]
            self.last_sync = received_at or Time.utcnow()
            self._save()

    async def lists(self) -> tuple[list[str], list[str]]:
        """Pattern text of the unexpired (allow, deny) entries."""
        now = Time.utcnow()
        async with self._lock:
            return (
                [p.pattern for p in self._allow if not p.expired(now)],
                [p.pattern for p in self._deny if not p.expired(now)],
            )

    async def mark_heartbeat(self, at: datetime | None = None) -> None:
        async with self._lock:
            self.last_heartbeat = at or Time.utcnow()
            self._save()

    def to_dict(self) -> dict[str, Any]:
        return {
            "allow": [p.to_dict() for p in self._allow],
            "deny": [p.to_dict() for p in self._deny],
            "last_sync": Time.isoformat(self.last_sync),
            "last_heartbeat": Time.isoformat(self.last_heartbeat),
        }

    def _save(self) -> None:
        if self._path is None:
            return
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            tmp.write_text(json.dumps(self.to_dict(), indent=2))
            os.replace(tmp, self._path)
        except OSError as error:
            logger.warning("Failed to persist cache to %s: %s", self._path, error)


def _parse_time(value: object) -> datetime | None:
    if not value:
        return None
    return Time.ensure_utc(datetime.fromisoformat(str(value)))
