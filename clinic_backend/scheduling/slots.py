"""Fixed catalog of bookable times of day."""

from datetime import date, datetime, time, timedelta

from clinic_backend.scheduling.time_format import format_12_hour

SLOT_INCREMENT_MINUTES = 30
MORNING_BLOCK = (time(9, 0), time(11, 30))
AFTERNOON_BLOCK = (time(13, 0), time(16, 30))


def iterate_block(first_start: time, last_start: time) -> list[time]:
    starts: list[time] = []
    current = datetime.combine(date.min, first_start)
    last = datetime.combine(date.min, last_start)

    while current <= last:
        starts.append(current.time())
        current += timedelta(minutes=SLOT_INCREMENT_MINUTES)

    return starts


def slot_times() -> list[time]:
    return iterate_block(*MORNING_BLOCK) + iterate_block(*AFTERNOON_BLOCK)


def slots_for_date(day: date) -> list[str]:
    """Every date offers the same slots; bookings are not subtracted here."""
    del day
    return [format_12_hour(slot) for slot in slot_times()]
