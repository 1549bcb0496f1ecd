"""Turns a doctor's weekly availability into bookable calendar dates."""

import re
from datetime import date, timedelta

from clinic_backend.core import config
from clinic_backend.scheduling.time_format import clinic_today

WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')
NON_WORKING_WEEKDAYS = frozenset({5, 6})

_TIME_RANGE_PATTERN = re.compile(r'^\s*([01]\d|2[0-3]):([0-5]\d)\s*-\s*([01]\d|2[0-3]):([0-5]\d)\s*$')


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def parse_availability(availability: dict | None) -> dict[str, list[str]]:
    """Validate an availability map and normalise its keys and ranges.

    Weekdays without any range are dropped, since an absent weekday already
    means the doctor is unavailable that day.
    """
    if not availability:
        return {}

    if not isinstance(availability, dict):
        raise ValueError('Availability must map weekday names to time ranges.')

    normalized: dict[str, list[str]] = {}
    for raw_day, raw_ranges in availability.items():
        day = str(raw_day).strip().lower()
        if day not in WEEKDAY_NAMES:
            raise ValueError(f'Unknown weekday: {raw_day!r}.')

        if isinstance(raw_ranges, str):
            raw_ranges = [raw_ranges]

        ranges: list[str] = []
        for raw_range in raw_ranges or []:
            match = _TIME_RANGE_PATTERN.match(str(raw_range))
            if not match:
                raise ValueError(f'Invalid time range for {day}: {raw_range!r}. Expected "HH:MM-HH:MM".')
            start = f'{match.group(1)}:{match.group(2)}'
            end = f'{match.group(3)}:{match.group(4)}'
            if start >= end:
                raise ValueError(f'Time range for {day} must end after it starts: {raw_range!r}.')
            ranges.append(f'{start}-{end}')

        if ranges:
            normalized[day] = ranges

    return normalized


def describe_availability(availability: dict | None) -> list[str]:
    normalized = parse_availability(availability)
    return [
        f'{day.capitalize()}: {", ".join(normalized[day])}'
        for day in WEEKDAY_NAMES
        if day in normalized
    ]


def resolve_available_dates(
    availability: dict | None,
    horizon_days: int = config.BOOKING_HORIZON_DAYS,
    today: date | None = None,
    honor_doctor_weekdays: bool = config.HONOR_DOCTOR_WEEKDAYS,
) -> list[date]:
    """Bookable dates from tomorrow through ``horizon_days`` days ahead.

    Weekends are always excluded. The doctor's own weekday map is only
    consulted when ``honor_doctor_weekdays`` is set.
    """
    if isinstance(horizon_days, bool) or not isinstance(horizon_days, int) or horizon_days <= 0:
        raise ValueError('horizon_days must be a positive integer.')

    today = today or clinic_today()
    working_days = set(parse_availability(availability)) if honor_doctor_weekdays else None

    dates: list[date] = []
    for offset in range(1, horizon_days + 1):
        current_day = today + timedelta(days=offset)
        if current_day.weekday() in NON_WORKING_WEEKDAYS:
            continue
        if working_days is not None and weekday_name(current_day) not in working_days:
            continue
        dates.append(current_day)

    return dates
