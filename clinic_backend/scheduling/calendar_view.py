"""Month/week calendar navigation that re-fetches its window on every move.

Each fetch is tagged with a generation number. Only the result for the most
recent fetch is applied; results for superseded fetches are discarded so a
slow response for a previous month never overwrites the current one.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any, Protocol

from clinic_backend.scheduling.calendar_grid import (
    CalendarCell,
    build_month_grid,
    build_week_grid,
    month_window,
    week_window,
)
from clinic_backend.scheduling.errors import SchedulingError
from clinic_backend.scheduling.time_format import clinic_today

logger = logging.getLogger(__name__)


class AppointmentSource(Protocol):
    def list_appointments(self, **filters: Any) -> list[Any]: ...


class CalendarMode(str, Enum):
    MONTH = 'month'
    WEEK = 'week'


@dataclass(frozen=True)
class FetchRequest:
    generation: int
    start_date: date
    end_date: date


def shift_month(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) + months
    return date(month_index // 12, month_index % 12 + 1, 1)


class CalendarNavigator:
    def __init__(
        self,
        store: AppointmentSource | None = None,
        mode: CalendarMode = CalendarMode.MONTH,
        reference_date: date | None = None,
        today: date | None = None,
        **filters: Any,
    ):
        self.store = store
        self.mode = CalendarMode(mode)
        self.today = today
        self.reference_date = reference_date or today or clinic_today()
        self.filters = {key: value for key, value in filters.items() if value is not None}
        self.generation = 0
        self.appointments: list[Any] = []
        self.error: SchedulingError | None = None
        self.loading = False

    @property
    def window(self) -> tuple[date, date]:
        if self.mode is CalendarMode.MONTH:
            return month_window(self.reference_date.year, self.reference_date.month)
        return week_window(self.reference_date)

    @property
    def cells(self) -> list[CalendarCell]:
        if self.mode is CalendarMode.MONTH:
            return build_month_grid(
                self.reference_date.year,
                self.reference_date.month,
                self.appointments,
                today=self.today,
            )
        return build_week_grid(self.reference_date, self.appointments, today=self.today)

    def next_period(self) -> None:
        self._move(1)

    def previous_period(self) -> None:
        self._move(-1)

    def go_to_today(self) -> None:
        self.reference_date = self.today or clinic_today()

    def set_mode(self, mode: CalendarMode | str) -> None:
        self.mode = CalendarMode(mode)

    def set_filters(self, **filters: Any) -> None:
        self.filters = {key: value for key, value in filters.items() if value is not None}

    def _move(self, step: int) -> None:
        if self.mode is CalendarMode.MONTH:
            self.reference_date = shift_month(self.reference_date, step)
        else:
            self.reference_date = self.reference_date + timedelta(weeks=step)

    def begin_fetch(self) -> FetchRequest:
        self.generation += 1
        self.loading = True
        start_date, end_date = self.window
        return FetchRequest(self.generation, start_date, end_date)

    def is_current(self, request: FetchRequest) -> bool:
        return request.generation == self.generation

    def apply_result(self, request: FetchRequest, appointments: list[Any]) -> bool:
        if not self.is_current(request):
            logger.debug('Discarding stale calendar fetch %s (current %s)', request.generation, self.generation)
            return False
        self.appointments = list(appointments)
        self.error = None
        self.loading = False
        return True

    def fail_fetch(self, request: FetchRequest, error: SchedulingError) -> bool:
        if not self.is_current(request):
            return False
        # keep the last good appointments so the grid stays usable
        self.error = error
        self.loading = False
        return True

    def refresh(self) -> list[CalendarCell]:
        if self.store is None:
            raise RuntimeError('CalendarNavigator.refresh needs a store.')

        request = self.begin_fetch()
        try:
            appointments = self.store.list_appointments(
                start_date=request.start_date,
                end_date=request.end_date,
                **self.filters,
            )
        except SchedulingError as exc:
            self.fail_fetch(request, exc)
            logger.warning('Calendar fetch for %s..%s failed: %s', request.start_date, request.end_date, exc)
        else:
            self.apply_result(request, appointments)
        return self.cells
