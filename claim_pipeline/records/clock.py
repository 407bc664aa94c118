"""Timestamp parsing and reporting-timezone helpers."""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo


def parse_timestamp(value: str | None, tz: ZoneInfo) -> datetime | None:
    """
    Parse an ISO-like timestamp into an aware datetime.

    Naive values are taken to be in the reporting timezone. Empty strings and
    the "null" sentinel yield None.
    """
    if value is None:
        return None
    value = value.strip()
    if not value or value.lower() == "null":
        return None

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def from_epoch_millis(millis: int, tz: ZoneInfo) -> datetime:
    """Convert epoch milliseconds to a datetime in the reporting timezone."""
    return datetime.fromtimestamp(millis / 1000, tz)


def to_epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def local_date(moment: datetime | None, tz: ZoneInfo) -> date | None:
    """Calendar date of an instant in the reporting timezone."""
    if moment is None:
        return None
    return moment.astimezone(tz).date()


def format_hm(moment: datetime | None, tz: ZoneInfo, placeholder: str = "-") -> str:
    """HH:MM in the reporting timezone."""
    if moment is None:
        return placeholder
    return moment.astimezone(tz).strftime("%H:%M")


def format_hms(moment: datetime | None, tz: ZoneInfo, placeholder: str = "-") -> str:
    """HH:MM:SS in the reporting timezone."""
    if moment is None:
        return placeholder
    return moment.astimezone(tz).strftime("%H:%M:%S")


def parse_time_of_day(time_str: str) -> int:
    """Parse HH:MM:SS, or HH:MM, to seconds since midnight."""
    parts = time_str.strip().split(":")
    if len(parts) == 2:
        parts.append("0")
    if len(parts) != 3:
        raise ValueError(f"Invalid time format: {time_str}")

    hours = int(parts[0])
    minutes = int(parts[1])
    seconds = int(parts[2])

    return hours * 3600 + minutes * 60 + seconds


def seconds_of_day(moment: datetime, tz: ZoneInfo) -> int:
    local = moment.astimezone(tz)
    return local.hour * 3600 + local.minute * 60 + local.second


def at_time_of_day(day: date, seconds: int, tz: ZoneInfo) -> datetime:
    """Aware datetime for a calendar date and a seconds-since-midnight offset."""
    seconds %= 86400
    clock = time(seconds // 3600, (seconds % 3600) // 60, seconds % 60)
    return datetime.combine(day, clock, tzinfo=tz)


WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def weekday_name(day: date) -> str:
    """Lower-case English weekday name, as used by timetables."""
    return WEEKDAY_NAMES[day.weekday()]
