"""Time utilities."""
from datetime import UTC, datetime, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Return current UTC time with timezone awareness."""

    return datetime.now(tz=UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_now(tz_name: str, now: datetime | None = None) -> datetime:
    """Return ``now`` (default: current time) expressed in the given IANA zone."""

    current = as_utc(now) if now is not None else utcnow()
    return current.astimezone(ZoneInfo(tz_name))


def local_today(tz_name: str, now: datetime | None = None) -> str:
    """Return the local calendar day as ``YYYY-MM-DD``."""

    return local_now(tz_name, now).date().isoformat()


__all__ = ["utcnow", "as_utc", "local_now", "local_today"]
