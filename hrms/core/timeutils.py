"""
Clock source and calendar-day helpers.

All timestamps are persisted as UTC. The "local" calendar day is defined
by ``settings.TIMEZONE`` and spans ``[00:00:00.000, 23:59:59.999]``.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from hrms.core.config import settings

_END_OF_DAY = time(23, 59, 59, 999000)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Normalise a potentially-naive timestamp to UTC-aware."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_date(dt: datetime) -> date:
    """Calendar day of an instant in the server's local timezone."""
    return ensure_utc(dt).astimezone(local_tz()).date()


def today() -> date:
    return local_date(utc_now())


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC instants for the first and last millisecond of a local day."""
    tz = local_tz()
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, _END_OF_DAY, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def parse_instant(value: object) -> datetime | None:
    """Best-effort parse of an ISO string, epoch milliseconds or datetime.

    Returns ``None`` instead of raising when the value is not a valid instant.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=local_tz())
        return parsed.astimezone(timezone.utc)
    return None


def parse_day(value: str) -> date | None:
    """Parse a ``YYYY-MM-DD`` day or an ISO instant into a local calendar day."""
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    instant = parse_instant(text)
    return local_date(instant) if instant is not None else None


def iso(dt: datetime | None) -> str | None:
    """ISO-8601 UTC rendering with millisecond precision and ``Z`` suffix."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")
