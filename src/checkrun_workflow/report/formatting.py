"""Date, time and duration formatting for the report narrative."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def format_duration(started_at: datetime, ended_at: datetime) -> str:
    """Human duration between two instants.

    Rounded to whole minutes; under an hour prints minutes only, otherwise
    hours and minutes.  Negative spans count as zero.
    """
    seconds = (as_utc(ended_at) - as_utc(started_at)).total_seconds()
    minutes = max(0, round(seconds / 60))
    if minutes < 60:
        return _plural(minutes, "minute")
    hours, rest = divmod(minutes, 60)
    return f"{_plural(hours, 'hour')} {_plural(rest, 'minute')}"


def format_clock(value: datetime, tz_name: str) -> str:
    """``HH:MM`` in the given timezone."""
    return as_utc(value).astimezone(ZoneInfo(tz_name)).strftime("%H:%M")


def format_long_date(value: datetime, tz_name: str) -> str:
    """``19 October 2026, 14:05`` in the given timezone."""
    local = as_utc(value).astimezone(ZoneInfo(tz_name))
    return f"{local.day} {local.strftime('%B %Y, %H:%M')}"


def format_short_date(value: datetime, tz_name: str) -> str:
    """``2026-10-19`` in the given timezone."""
    return as_utc(value).astimezone(ZoneInfo(tz_name)).strftime("%Y-%m-%d")
