# app/core/clock.py

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_epoch_millis(value: datetime) -> int:
    return int(value.replace(tzinfo=timezone.utc).timestamp() * 1000)


def from_epoch_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)


class Clock:
    """Time source injected into services so callers (and tests) control 'now'."""

    def now(self) -> datetime:
        return utcnow()


system_clock = Clock()


def normalize_utc(value: datetime) -> datetime:
    """Aware datetimes are converted to naive UTC; naive ones are assumed UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
