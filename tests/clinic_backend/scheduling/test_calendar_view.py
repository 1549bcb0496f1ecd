from datetime import date, datetime

from clinic_backend.scheduling.calendar_view import CalendarMode, CalendarNavigator, shift_month
from clinic_backend.scheduling.errors import ServiceTimeoutError


class FakeAppointmentSource:
    def __init__(self, appointments=None, error=None):
        self.appointments = appointments or []
        self.error = error
        self.calls = []

    def list_appointments(self, **filters):
        self.calls.append(filters)
        if self.error:
            raise self.error
        return self.appointments


def test_refresh_fetches_month_window_and_builds_grid() -> None:
    appointment = {'id': 1, 'date_time': datetime(2025, 4, 30, 9, 0)}
    store = FakeAppointmentSource([appointment])
    navigator = CalendarNavigator(store, reference_date=date(2025, 4, 10), today=date(2025, 4, 10), doctor_id=7)

    cells = navigator.refresh()

    assert store.calls == [{'start_date': date(2025, 3, 31), 'end_date': date(2025, 5, 11), 'doctor_id': 7}]
    assert len(cells) == 42
    assert [cell.appointments for cell in cells if cell.date == date(2025, 4, 30)] == [[appointment]]


def test_navigation_refetches_each_period() -> None:
    store = FakeAppointmentSource()
    navigator = CalendarNavigator(store, reference_date=date(2025, 12, 15))

    navigator.refresh()
    navigator.next_period()
    navigator.refresh()

    assert navigator.reference_date == date(2026, 1, 1)
    assert [call['start_date'] for call in store.calls] == [date(2025, 12, 1), date(2025, 12, 29)]


def test_week_mode_moves_by_seven_days() -> None:
    navigator = CalendarNavigator(mode=CalendarMode.WEEK, reference_date=date(2025, 4, 16))

    navigator.previous_period()

    assert navigator.reference_date == date(2025, 4, 9)
    assert navigator.window == (date(2025, 4, 7), date(2025, 4, 13))
    assert len(navigator.cells) == 7


def test_stale_fetch_results_are_discarded() -> None:
    navigator = CalendarNavigator(reference_date=date(2025, 4, 10))
    april_request = navigator.begin_fetch()
    navigator.next_period()
    may_request = navigator.begin_fetch()

    may_appointments = [{'id': 2, 'date_time': datetime(2025, 5, 5, 9, 0)}]
    april_appointments = [{'id': 1, 'date_time': datetime(2025, 4, 7, 9, 0)}]

    assert navigator.apply_result(may_request, may_appointments) is True
    assert navigator.apply_result(april_request, april_appointments) is False
    assert navigator.appointments == may_appointments
    assert navigator.loading is False


def test_failed_fetch_keeps_last_good_appointments() -> None:
    appointment = {'id': 1, 'date_time': datetime(2025, 4, 7, 9, 0)}
    store = FakeAppointmentSource([appointment])
    navigator = CalendarNavigator(store, reference_date=date(2025, 4, 10))
    navigator.refresh()

    store.error = ServiceTimeoutError('timed out')
    cells = navigator.refresh()

    assert navigator.error is store.error
    assert navigator.appointments == [appointment]
    assert len(cells) == 42


def test_superseded_failure_does_not_set_error() -> None:
    navigator = CalendarNavigator(reference_date=date(2025, 4, 10))
    stale = navigator.begin_fetch()
    navigator.begin_fetch()

    assert navigator.fail_fetch(stale, ServiceTimeoutError('timed out')) is False
    assert navigator.error is None


def test_shift_month_crosses_year_boundaries() -> None:
    assert shift_month(date(2025, 12, 31), 1) == date(2026, 1, 1)
    assert shift_month(date(2025, 1, 15), -1) == date(2024, 12, 1)
    assert shift_month(date(2025, 3, 31), 11) == date(2026, 2, 1)
