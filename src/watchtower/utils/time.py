"""Timezone helpers."""

from __future__ import annotations

from datetime import datetime, timezone


class Time:
    """Static helpers for datetime normalization."""

    @staticmethod
    def utcnow() -> datetime:
        """Return timezone-aware UTC now. Every expiry and cutoff reads this."""
        return datetime.now(timezone.utc)

    @staticmethod
    def ensure_utc(dt: datetime) -> datetime:
        """Ensure a datetime is UTC-aware. SQLite may strip timezone info."""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt

    @staticmethod
    def isoformat(dt: datetime | None) -> str | None:
        """UTC ISO-8601 string, or None."""
        if dt is None:
            return None
        return Time.ensure_utc(dt).isoformat()
