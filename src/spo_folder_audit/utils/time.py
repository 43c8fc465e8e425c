"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo

RETENTION_DAYS = 180


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_creation_time(value: str) -> datetime:
    """Parse an audit ``CreationTime`` value; offset-less values are UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def to_local(value: datetime, tz: tzinfo | None = None) -> datetime:
    if tz is None:
        return value.astimezone()
    return value.astimezone(tz)


def retention_boundary(now: datetime, days: int = RETENTION_DAYS) -> datetime:
    return ensure_utc(now) - timedelta(days=days)


def report_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d_%H%M%S")
