"""Expiry durations accepted by pattern creation and request approval."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from watchtower.utils.time import Time


class InvalidDurationError(ValueError):
    """Raised when a duration is not one of the accepted forms."""


class DurationPreset(Enum):
    """Fixed expiry presets offered to administrators."""

    MINUTES_15 = "15m"
    MINUTES_30 = "30m"
    HOUR_1 = "1h"
    HOURS_8 = "8h"
    HOURS_24 = "24h"
    WEEK_1 = "1w"

    @property
    def delta(self) -> timedelta:
        return _PRESET_DELTAS[self]


_PRESET_DELTAS = {
    DurationPreset.MINUTES_15: timedelta(minutes=15),
    DurationPreset.MINUTES_30: timedelta(minutes=30),
    DurationPreset.HOUR_1: timedelta(hours=1),
    DurationPreset.HOURS_8: timedelta(hours=8),
    DurationPreset.HOURS_24: timedelta(hours=24),
    DurationPreset.WEEK_1: timedelta(weeks=1),
}

PERMANENT = "permanent"
CUSTOM = "custom"
# One year, the largest custom duration the admin UI offers.
MAX_CUSTOM_MINUTES = 525_600


@dataclass(frozen=True)
class Expiry:
    """A parsed duration: a preset, a custom minute count, or permanent.

    ``delta`` is None for permanent patterns.
    """

    delta: timedelta | None

    @classmethod
    def permanent(cls) -> Expiry:
        return cls(delta=None)

    @classmethod
    def parse(cls, duration: object, custom_minutes: object = None) -> Expiry:
        """Validate a duration from a request body.

        Raises:
            InvalidDurationError: For unknown values or a custom minute
                count outside 1..MAX_CUSTOM_MINUTES.
        """
        if duration is None or duration == "" or duration == PERMANENT:
            return cls.permanent()
        if duration == CUSTOM:
            if isinstance(custom_minutes, bool) or not isinstance(custom_minutes, int):
                raise InvalidDurationError("custom_minutes must be a positive integer")
            if custom_minutes <= 0:
                raise InvalidDurationError("custom_minutes must be a positive integer")
            if custom_minutes > MAX_CUSTOM_MINUTES:
                raise InvalidDurationError(
                    f"custom_minutes must be at most {MAX_CUSTOM_MINUTES}",
                )
            return cls(delta=timedelta(minutes=custom_minutes))
        try:
            preset = DurationPreset(duration)
        except ValueError as error:
            raise InvalidDurationError(f"Invalid duration: {duration}") from error
        return cls(delta=preset.delta)

    @property
    def is_permanent(self) -> bool:
        return self.delta is None

    def expires_at(self, now: datetime | None = None) -> datetime | None:
        """Absolute expiry computed from server time, or None when permanent."""
        if self.delta is None:
            return None
        start = now if now is not None else Time.utcnow()
        try:
            return start + self.delta
        except OverflowError as error:
            raise InvalidDurationError("Expiry is out of range") from error
