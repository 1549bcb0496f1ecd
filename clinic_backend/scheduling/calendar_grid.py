"""Projects appointments onto fixed-shape month and week grids.

Month grids always hold 42 cells (six Monday-first weeks) so every month
renders with the same shape, including some days of the adjacent months.
Week grids hold the seven days Monday through Sunday.

Appointments are bucketed by the calendar day of their instant in clinic
time (see ``time_format.clinic_day``) and ordered by time of day inside a
cell. The sort is stable, so appointments at the same time keep the order
the service returned them in.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable

from clinic_backend.scheduling.time_format import clinic_day, clinic_timezone, clinic_today

MONTH_GRID_CELLS = 42
WEEK_GRID_CELLS = 7


@dataclass
class CalendarCell:
    date: date
    is_current_period: bool
    is_today: bool
    appointments: list[Any] = field(default_factory=list)


def appointment_instant(appointment: Any) -> datetime:
    if isinstance(appointment, dict):
        value = appointment.get('date_time')
    else:
        value = getattr(appointment, 'date_time', None)

    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if not isinstance(value, datetime):
        raise ValueError(f'Appointment has no date_time: {appointment!r}')
    return value


def start_of_week(day: date) -> date:
    return day - timedelta(days=day.weekday())


def month_window(year: int, month: int) -> tuple[date, date]:
    """First and last day (inclusive) shown by the month grid."""
    first_cell = start_of_week(date(year, month, 1))
    return first_cell, first_cell + timedelta(days=MONTH_GRID_CELLS - 1)


def week_window(reference_date: date) -> tuple[date, date]:
    first_cell = start_of_week(reference_date)
    return first_cell, first_cell + timedelta(days=WEEK_GRID_CELLS - 1)


def group_by_day(appointments: Iterable[Any]) -> dict[date, list[Any]]:
    buckets: dict[date, list[Any]] = defaultdict(list)
    for appointment in appointments:
        buckets[clinic_day(appointment_instant(appointment))].append(appointment)

    for day_appointments in buckets.values():
        day_appointments.sort(key=lambda item: _time_of_day(appointment_instant(item)))

    return buckets


def _time_of_day(instant: datetime) -> time:
    if instant.tzinfo is not None:
        instant = instant.astimezone(clinic_timezone())
    return instant.time()


def _build_cells(
    first_day: date,
    count: int,
    appointments: Iterable[Any],
    in_period,
    today: date | None,
) -> list[CalendarCell]:
    today = today or clinic_today()
    buckets = group_by_day(appointments)

    cells: list[CalendarCell] = []
    for offset in range(count):
        current_day = first_day + timedelta(days=offset)
        cells.append(
            CalendarCell(
                date=current_day,
                is_current_period=in_period(current_day),
                is_today=current_day == today,
                appointments=list(buckets.get(current_day, [])),
            )
        )
    return cells


def build_month_grid(
    year: int,
    month: int,
    appointments: Iterable[Any] = (),
    today: date | None = None,
) -> list[CalendarCell]:
    if not 1 <= month <= 12:
        raise ValueError('month must be between 1 and 12.')

    first_cell, _ = month_window(year, month)
    return _build_cells(
        first_cell,
        MONTH_GRID_CELLS,
        appointments,
        lambda day: day.year == year and day.month == month,
        today,
    )


def build_week_grid(
    reference_date: date,
    appointments: Iterable[Any] = (),
    today: date | None = None,
) -> list[CalendarCell]:
    first_cell, _ = week_window(reference_date)
    # every day of the anchored week belongs to the period
    return _build_cells(first_cell, WEEK_GRID_CELLS, appointments, lambda day: True, today)
