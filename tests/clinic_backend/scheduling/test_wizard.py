from datetime import date, datetime, timedelta

import pytest

from clinic_backend.schemas.doctor import DoctorResponse
from clinic_backend.scheduling.errors import (
    BookingValidationError,
    DoctorLookupError,
    ServiceTimeoutError,
    SlotConflictError,
    WizardStateError,
)
from clinic_backend.scheduling.wizard import BookingWizard, WizardDraft, WizardStep, filter_doctors

TODAY = date(2026, 1, 7)  # Wednesday
NEXT_MONDAY = date(2026, 1, 12)
BOOKED_AT = datetime(2026, 1, 7, 10, 0)

JANE = DoctorResponse(
    id=1,
    first_name='Jane',
    last_name='Doe',
    specialization='Cardiology',
    department_id=3,
    availability={'monday': ['09:00-17:00']},
)
JOHN = DoctorResponse(
    id=2,
    first_name='John',
    last_name='Smith',
    specialization='Neurology',
    department_id=4,
    availability={'tuesday': ['09:00-17:00']},
)


class FakeStore:
    def __init__(self, doctors=None):
        self.doctors = list(doctors if doctors is not None else [JANE, JOHN])
        self.commands = []
        self.failures = []
        self.on_create = None

    def list_doctors(self):
        return list(self.doctors)

    def create_appointment(self, command):
        self.commands.append(command)
        if self.on_create:
            self.on_create()
        if self.failures:
            raise self.failures.pop(0)
        return {'id': len(self.commands), **command.model_dump()}


def make_wizard(store=None, patient_id=42) -> BookingWizard:
    wizard = BookingWizard(store or FakeStore(), patient_id, today=TODAY, clock=lambda: BOOKED_AT)
    wizard.load_doctors()
    return wizard


def advance_to_confirming(wizard: BookingWizard, doctor=JANE, day=NEXT_MONDAY, display_time='9:00 AM') -> None:
    wizard.select_doctor(doctor)
    wizard.next_step()
    wizard.select_date(day)
    wizard.select_time(display_time)
    wizard.next_step()


def test_booking_jane_doe_on_next_monday_creates_one_scheduled_appointment() -> None:
    store = FakeStore()
    wizard = make_wizard(store)

    wizard.search('jane')
    wizard.select_doctor(wizard.filtered_doctors[0])
    wizard.next_step()
    monday = next(day for day in wizard.available_dates if day.weekday() == 0)
    wizard.select_date(monday)
    wizard.select_time('9:00 AM')
    wizard.next_step()
    appointment = wizard.submit()

    assert monday == NEXT_MONDAY
    assert len(store.commands) == 1
    command = store.commands[0]
    assert command.date_time == datetime(2026, 1, 12, 9, 0, 0)
    assert command.status == 'scheduled'
    assert command.appointment_type == 'regular'
    assert command.doctor_id == 1
    assert command.department_id == 3
    assert command.patient_id == 42
    assert wizard.step is WizardStep.BOOKED
    assert wizard.confirmation.appointment == appointment
    assert wizard.confirmation.doctor_name == 'Jane Doe'


def test_filter_doctors_matches_name_and_specialization_case_insensitively() -> None:
    assert filter_doctors([JANE, JOHN], 'DOE') == [JANE]
    assert filter_doctors([JANE, JOHN], 'neuro') == [JOHN]
    assert filter_doctors([JANE, JOHN], '') == [JANE, JOHN]
    assert filter_doctors([JANE, JOHN], '', specialization='cardiology') == [JANE]
    assert filter_doctors([JANE, JOHN], 'john', specialization='Cardiology') == []


def test_cannot_leave_doctor_step_without_a_doctor() -> None:
    wizard = make_wizard()

    with pytest.raises(BookingValidationError) as exception_info:
        wizard.next_step()

    assert exception_info.value.field_errors == {'doctor': 'Please select a doctor.'}
    assert wizard.step is WizardStep.SELECTING_DOCTOR


def test_cannot_leave_date_time_step_without_time() -> None:
    wizard = make_wizard()
    wizard.select_doctor(JANE)
    wizard.next_step()
    wizard.select_date(NEXT_MONDAY)

    with pytest.raises(BookingValidationError) as exception_info:
        wizard.next_step()

    assert set(exception_info.value.field_errors) == {'time'}
    assert wizard.step is WizardStep.SELECTING_DATE_TIME


def test_cannot_submit_before_confirming() -> None:
    store = FakeStore()
    wizard = make_wizard(store)
    wizard.select_doctor(JANE)

    with pytest.raises(WizardStateError):
        wizard.submit()

    assert store.commands == []


def test_date_must_come_from_resolver_and_time_from_catalog() -> None:
    wizard = make_wizard()
    wizard.select_doctor(JANE)
    wizard.next_step()

    with pytest.raises(BookingValidationError):
        wizard.select_date(date(2026, 1, 10))  # Saturday
    with pytest.raises(BookingValidationError):
        wizard.select_date(TODAY)
    with pytest.raises(BookingValidationError):
        wizard.select_time('9:00 AM')  # no date yet

    wizard.select_date(NEXT_MONDAY)
    with pytest.raises(BookingValidationError):
        wizard.select_time('12:00 PM')


def test_second_submit_while_submitting_is_rejected() -> None:
    store = FakeStore()
    wizard = make_wizard(store)
    advance_to_confirming(wizard)
    reentrant_errors = []

    def submit_again():
        with pytest.raises(WizardStateError) as exception_info:
            wizard.submit()
        reentrant_errors.append(exception_info.value)

    store.on_create = submit_again
    wizard.submit()

    assert len(store.commands) == 1
    assert len(reentrant_errors) == 1
    assert wizard.step is WizardStep.BOOKED


def test_failed_submit_returns_to_confirming_and_keeps_draft() -> None:
    store = FakeStore()
    store.failures.append(ServiceTimeoutError('The scheduling service did not respond in time.'))
    wizard = make_wizard(store)
    advance_to_confirming(wizard)
    wizard.set_appointment_type('follow-up')
    wizard.set_notes('chest pain')
    draft_key = wizard.draft.idempotency_key

    with pytest.raises(ServiceTimeoutError) as exception_info:
        wizard.submit()

    assert exception_info.value.retryable is True
    assert wizard.step is WizardStep.CONFIRMING
    assert wizard.general_error == 'The scheduling service did not respond in time.'
    assert wizard.draft.doctor == JANE
    assert wizard.draft.date == NEXT_MONDAY
    assert wizard.draft.time == '9:00 AM'
    assert wizard.draft.notes == 'chest pain'

    wizard.submit()

    assert wizard.step is WizardStep.BOOKED
    assert [command.idempotency_key for command in store.commands] == [draft_key, draft_key]
    assert store.commands[1].appointment_type == 'follow-up'
    assert store.commands[1].notes == 'chest pain'


def test_slot_conflict_lets_user_pick_another_time() -> None:
    store = FakeStore()
    store.failures.append(SlotConflictError('This time is already booked.', status_code=409))
    wizard = make_wizard(store)
    advance_to_confirming(wizard)

    with pytest.raises(SlotConflictError) as exception_info:
        wizard.submit()

    assert exception_info.value.requires_new_slot is True
    assert exception_info.value.retryable is False
    assert wizard.step is WizardStep.CONFIRMING

    wizard.previous_step()
    wizard.select_time('9:30 AM')
    wizard.next_step()
    wizard.submit()

    assert store.commands[-1].date_time == datetime(2026, 1, 12, 9, 30)
    assert wizard.general_error is None


def test_stale_doctor_blocks_submission_with_field_error() -> None:
    store = FakeStore()
    wizard = make_wizard(store)
    advance_to_confirming(wizard)

    store.doctors = [JOHN]
    wizard.load_doctors()

    with pytest.raises(DoctorLookupError):
        wizard.submit()

    assert store.commands == []
    assert 'doctor' in wizard.field_errors
    assert wizard.step is WizardStep.CONFIRMING


def test_select_doctor_by_name_reports_lookup_error() -> None:
    wizard = make_wizard()

    wizard.select_doctor_by_name('jane doe')
    assert wizard.draft.doctor == JANE

    with pytest.raises(DoctorLookupError):
        wizard.select_doctor_by_name('Gregory House')


def test_missing_patient_is_a_validation_error() -> None:
    store = FakeStore()
    wizard = make_wizard(store, patient_id=None)
    advance_to_confirming(wizard)

    with pytest.raises(BookingValidationError) as exception_info:
        wizard.submit()

    assert exception_info.value.field_errors == {'patient': 'Patient ID is required.'}
    assert store.commands == []


def test_changing_doctor_clears_date_and_time() -> None:
    wizard = make_wizard()
    advance_to_confirming(wizard)
    wizard.previous_step()
    wizard.previous_step()

    wizard.select_doctor(JOHN)

    assert wizard.draft.date is None
    assert wizard.draft.time is None


def test_booked_wizard_resets_after_confirmation_delay() -> None:
    wizard = make_wizard()
    advance_to_confirming(wizard)
    wizard.submit()

    assert wizard.poll(BOOKED_AT + timedelta(seconds=2)) is False
    assert wizard.step is WizardStep.BOOKED

    assert wizard.poll(BOOKED_AT + timedelta(seconds=3)) is True
    assert wizard.step is WizardStep.SELECTING_DOCTOR
    assert wizard.draft.doctor is None
    assert wizard.confirmation is None


def test_cancel_discards_draft_and_is_absorbing() -> None:
    store = FakeStore()
    wizard = make_wizard(store)
    advance_to_confirming(wizard)

    wizard.cancel()

    assert wizard.step is WizardStep.CANCELLED
    assert wizard.draft.doctor is None
    with pytest.raises(WizardStateError):
        wizard.submit()
    with pytest.raises(WizardStateError):
        wizard.cancel()
    assert store.commands == []


def test_appointment_type_is_normalized_and_validated() -> None:
    wizard = make_wizard()
    advance_to_confirming(wizard)

    wizard.set_appointment_type('Check-Up')
    assert wizard.draft.appointment_type == 'consultation'

    with pytest.raises(BookingValidationError):
        wizard.set_appointment_type('surgery')


def test_core_does_not_prevent_double_booking_of_the_same_slot() -> None:
    store = FakeStore()
    first = make_wizard(store, patient_id=1)
    second = make_wizard(store, patient_id=2)

    advance_to_confirming(first)
    advance_to_confirming(second)
    first.submit()
    second.submit()

    assert first.step is WizardStep.BOOKED
    assert second.step is WizardStep.BOOKED
    assert [(command.doctor_id, command.date_time) for command in store.commands] == [
        (1, datetime(2026, 1, 12, 9, 0)),
        (1, datetime(2026, 1, 12, 9, 0)),
    ]


def test_honoring_doctor_weekdays_limits_dates() -> None:
    wizard = BookingWizard(FakeStore(), 42, today=TODAY, honor_doctor_weekdays=True)
    wizard.select_doctor(JANE)

    assert all(day.weekday() == 0 for day in wizard.available_dates)


def test_new_draft_starts_empty_with_its_own_key() -> None:
    first = WizardDraft()
    second = WizardDraft()

    assert first.doctor is None
    assert first.date is None
    assert first.time is None
    assert first.appointment_type == 'regular'
    assert first.idempotency_key != second.idempotency_key


def test_cancel_while_submitting_discards_the_result() -> None:
    store = FakeStore()
    wizard = make_wizard(store)
    advance_to_confirming(wizard)
    store.on_create = wizard.cancel

    result = wizard.submit()

    assert result is None
    assert len(store.commands) == 1
    assert wizard.step is WizardStep.CANCELLED
    assert wizard.confirmation is None
    assert wizard.poll(BOOKED_AT + timedelta(seconds=10)) is False


def test_cancel_while_submitting_keeps_cancelled_on_failure() -> None:
    store = FakeStore()
    store.failures.append(ServiceTimeoutError('The scheduling service did not respond in time.'))
    wizard = make_wizard(store)
    advance_to_confirming(wizard)
    store.on_create = wizard.cancel

    with pytest.raises(ServiceTimeoutError):
        wizard.submit()

    assert wizard.step is WizardStep.CANCELLED
    assert wizard.general_error is None
