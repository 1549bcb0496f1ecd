"""Conversions between 12-hour display times and 24-hour storage times."""

import re
from datetime import date, datetime, time, timezone, tzinfo
from zoneinfo import ZoneInfo

from clinic_backend.core import config

_TWELVE_HOUR_PATTERN = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$')
_TWENTY_FOUR_HOUR_PATTERN = re.compile(r'^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$')


def parse_12_hour(value: str) -> time:
    match = _TWELVE_HOUR_PATTERN.match(value or '')
    if not match:
        raise ValueError(f'Invalid 12-hour time: {value!r}. Expected "h:mm AM" or "h:mm PM".')

    hour, minute, meridiem = int(match.group(1)), int(match.group(2)), match.group(3).upper()
    if not 1 <= hour <= 12 or not 0 <= minute <= 59:
        raise ValueError(f'Invalid 12-hour time: {value!r}.')

    if meridiem == 'AM':
        hour = 0 if hour == 12 else hour
    elif hour != 12:
        hour += 12

    return time(hour, minute)


def format_12_hour(value: time) -> str:
    hour = value.hour % 12 or 12
    meridiem = 'AM' if value.hour < 12 else 'PM'
    return f'{hour}:{value.minute:02d} {meridiem}'


def to_24_hour(value: str) -> str:
    """Convert "2:30 PM" to "14:30:00"."""
    return parse_12_hour(value).strftime('%H:%M:%S')


def to_12_hour(value: str) -> str:
    """Convert "14:30:00" (or "14:30") to "2:30 PM"."""
    match = _TWENTY_FOUR_HOUR_PATTERN.match(value or '')
    if not match:
        raise ValueError(f'Invalid 24-hour time: {value!r}. Expected "HH:MM:SS".')

    hour, minute, second = int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)
    if not 0 <= hour <= 23 or not 0 <= minute <= 59 or not 0 <= second <= 59:
        raise ValueError(f'Invalid 24-hour time: {value!r}.')

    return format_12_hour(time(hour, minute, second))


def combine_date_and_time(day: date, display_time: str) -> datetime:
    """Merge a calendar date and a 12-hour slot into one instant."""
    return datetime.combine(day, parse_12_hour(display_time))


def clinic_timezone() -> tzinfo:
    if config.CLINIC_TIMEZONE.upper() == 'UTC':
        return timezone.utc
    return ZoneInfo(config.CLINIC_TIMEZONE)


def clinic_now() -> datetime:
    """Current naive clinic-local time, comparable with stored instants."""
    return datetime.now(clinic_timezone()).replace(tzinfo=None)


def clinic_today() -> date:
    return clinic_now().date()


def clinic_day(value: datetime | date) -> date:
    """Calendar day of an instant in clinic time.

    Naive datetimes are already clinic-local; aware ones are converted first.
    """
    if not isinstance(value, datetime):
        return value
    if value.tzinfo is not None:
        value = value.astimezone(clinic_timezone())
    return value.date()
