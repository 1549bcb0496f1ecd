"""Three-step booking wizard: doctor, then date and time, then confirmation.

The wizard owns a single ``WizardDraft`` and moves through ``WizardStep``
values. Each forward step validates what the draft must hold before the next
step may begin, and ``submit`` sends at most one create call to the store at a
time. A failed submit returns to ``CONFIRMING`` with the draft untouched so the
user can retry or cancel.

``store`` is any object providing ``list_doctors()`` and
``create_appointment(command)``, such as ``SchedulingApiClient``.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Protocol
from uuid import uuid4

from clinic_backend.core import config
from clinic_backend.schemas.appointment import CreateAppointmentRequest
from clinic_backend.scheduling.availability import resolve_available_dates
from clinic_backend.scheduling.errors import (
    BookingValidationError,
    DoctorLookupError,
    ServiceError,
    WizardStateError,
)
from clinic_backend.scheduling.lifecycle import AppointmentStatus, AppointmentType, normalize_appointment_type
from clinic_backend.scheduling.slots import slots_for_date
from clinic_backend.scheduling.time_format import clinic_now, combine_date_and_time

logger = logging.getLogger(__name__)


class BookingStore(Protocol):
    def list_doctors(self) -> list[Any]: ...

    def create_appointment(self, command: CreateAppointmentRequest) -> Any: ...


class WizardStep(str, Enum):
    SELECTING_DOCTOR = 'selecting_doctor'
    SELECTING_DATE_TIME = 'selecting_date_time'
    CONFIRMING = 'confirming'
    SUBMITTING = 'submitting'
    BOOKED = 'booked'
    CANCELLED = 'cancelled'


TERMINAL_STEPS = frozenset({WizardStep.BOOKED, WizardStep.CANCELLED})


@dataclass
class WizardDraft:
    doctor: Any = None
    date: 'date | None' = None
    time: str | None = None
    appointment_type: str = AppointmentType.REGULAR.value
    notes: str = ''
    idempotency_key: str = field(default_factory=lambda: uuid4().hex)


@dataclass
class BookingConfirmation:
    appointment: Any
    doctor_name: str
    date_time: datetime
    appointment_type: str


def doctor_name(doctor: Any) -> str:
    return f'{doctor.first_name} {doctor.last_name}'


def filter_doctors(doctors: list[Any], search_term: str = '', specialization: str | None = None) -> list[Any]:
    term = (search_term or '').strip().lower()
    wanted_specialization = (specialization or '').strip().lower()

    matches = []
    for doctor in doctors:
        if wanted_specialization and doctor.specialization.lower() != wanted_specialization:
            continue
        if term and term not in doctor_name(doctor).lower() and term not in doctor.specialization.lower():
            continue
        matches.append(doctor)
    return matches


class BookingWizard:
    def __init__(
        self,
        store: BookingStore,
        patient_id: int | None,
        *,
        today: date | None = None,
        horizon_days: int = config.BOOKING_HORIZON_DAYS,
        honor_doctor_weekdays: bool = config.HONOR_DOCTOR_WEEKDAYS,
        confirmation_seconds: int = config.CONFIRMATION_DISPLAY_SECONDS,
        clock: Callable[[], datetime] = clinic_now,
    ):
        self.store = store
        self.patient_id = patient_id
        self.today = today
        self.horizon_days = horizon_days
        self.honor_doctor_weekdays = honor_doctor_weekdays
        self.confirmation_delay = timedelta(seconds=confirmation_seconds)
        self.clock = clock

        self.doctors: list[Any] = []
        self.search_term = ''
        self.specialization: str | None = None
        self.step = WizardStep.SELECTING_DOCTOR
        self.draft = WizardDraft()
        self.field_errors: dict[str, str] = {}
        self.general_error: str | None = None
        self.last_error: ServiceError | None = None
        self.confirmation: BookingConfirmation | None = None
        self.booked_at: datetime | None = None

    # doctor selection

    def load_doctors(self) -> list[Any]:
        self.doctors = list(self.store.list_doctors())
        return self.doctors

    def search(self, search_term: str = '', specialization: str | None = None) -> list[Any]:
        self.search_term = search_term
        self.specialization = specialization
        return self.filtered_doctors

    @property
    def filtered_doctors(self) -> list[Any]:
        return filter_doctors(self.doctors, self.search_term, self.specialization)

    def select_doctor(self, doctor: Any) -> None:
        self._require_step(WizardStep.SELECTING_DOCTOR)
        if doctor is None:
            raise BookingValidationError({'doctor': 'Please select a doctor.'})

        if self.draft.doctor is not None and self.draft.doctor.id != doctor.id:
            # dates offered depend on the doctor
            self.draft.date = None
            self.draft.time = None
        self.draft.doctor = doctor
        self.field_errors.pop('doctor', None)

    def select_doctor_by_name(self, name: str) -> None:
        wanted = (name or '').strip().lower()
        for doctor in self.doctors:
            if doctor_name(doctor).lower() == wanted:
                self.select_doctor(doctor)
                return
        error = DoctorLookupError()
        self.field_errors.update(error.field_errors)
        raise error

    # date and time selection

    @property
    def available_dates(self) -> list[date]:
        if self.draft.doctor is None:
            return []
        return resolve_available_dates(
            self.draft.doctor.availability,
            self.horizon_days,
            today=self.today,
            honor_doctor_weekdays=self.honor_doctor_weekdays,
        )

    @property
    def available_times(self) -> list[str]:
        if self.draft.date is None:
            return []
        return slots_for_date(self.draft.date)

    def select_date(self, day: date) -> None:
        self._require_step(WizardStep.SELECTING_DATE_TIME)
        if day not in self.available_dates:
            raise BookingValidationError({'date': 'Please select one of the available dates.'})

        if self.draft.date != day:
            self.draft.time = None
        self.draft.date = day
        self.field_errors.pop('date', None)

    def select_time(self, display_time: str) -> None:
        self._require_step(WizardStep.SELECTING_DATE_TIME)
        if self.draft.date is None:
            raise BookingValidationError({'date': 'Please select a date first.'})
        if display_time not in self.available_times:
            raise BookingValidationError({'time': 'Please select one of the available times.'})

        self.draft.time = display_time
        self.field_errors.pop('time', None)

    # confirmation

    def set_appointment_type(self, appointment_type: str) -> None:
        self._require_step(WizardStep.CONFIRMING)
        try:
            self.draft.appointment_type = normalize_appointment_type(appointment_type).value
        except ValueError as exc:
            raise BookingValidationError({'appointment_type': str(exc)}) from exc

    def set_notes(self, notes: str) -> None:
        self._require_step(WizardStep.CONFIRMING)
        self.draft.notes = notes or ''

    # navigation

    def next_step(self) -> WizardStep:
        if self.step is WizardStep.SELECTING_DOCTOR:
            self._validate({'doctor': self.draft.doctor})
            self.step = WizardStep.SELECTING_DATE_TIME
        elif self.step is WizardStep.SELECTING_DATE_TIME:
            self._validate({'doctor': self.draft.doctor, 'date': self.draft.date, 'time': self.draft.time})
            self.step = WizardStep.CONFIRMING
        else:
            raise WizardStateError(f'Cannot advance from {self.step.value}.')
        return self.step

    def previous_step(self) -> WizardStep:
        if self.step is WizardStep.SELECTING_DATE_TIME:
            self.step = WizardStep.SELECTING_DOCTOR
        elif self.step is WizardStep.CONFIRMING:
            self.step = WizardStep.SELECTING_DATE_TIME
        else:
            raise WizardStateError(f'Cannot go back from {self.step.value}.')
        self.general_error = None
        return self.step

    def cancel(self) -> None:
        if self.step in TERMINAL_STEPS:
            raise WizardStateError(f'Booking is already {self.step.value}.')
        if self.step is WizardStep.SUBMITTING:
            # the in-flight result is discarded by submit
            logger.info('Booking cancelled while a request was in flight')
        self.step = WizardStep.CANCELLED
        self.draft = WizardDraft()
        self.field_errors = {}
        self.general_error = None

    def reset(self) -> None:
        self.step = WizardStep.SELECTING_DOCTOR
        self.draft = WizardDraft()
        self.search_term = ''
        self.specialization = None
        self.field_errors = {}
        self.general_error = None
        self.last_error = None
        self.confirmation = None
        self.booked_at = None

    # submission

    @property
    def can_submit(self) -> bool:
        return self.step is WizardStep.CONFIRMING

    def build_command(self) -> CreateAppointmentRequest:
        self._validate({
            'patient': self.patient_id,
            'doctor': self.draft.doctor,
            'date': self.draft.date,
            'time': self.draft.time,
        })
        self._resolve_selected_doctor()

        doctor = self.draft.doctor
        return CreateAppointmentRequest(
            patient_id=self.patient_id,
            doctor_id=doctor.id,
            department_id=getattr(doctor, 'department_id', None),
            date_time=combine_date_and_time(self.draft.date, self.draft.time),
            appointment_type=self.draft.appointment_type,
            status=AppointmentStatus.SCHEDULED.value,
            notes=self.draft.notes or None,
            idempotency_key=self.draft.idempotency_key,
        )

    def submit(self) -> Any:
        if self.step is WizardStep.SUBMITTING:
            raise WizardStateError('A booking request is already in flight.')
        self._require_step(WizardStep.CONFIRMING)

        command = self.build_command()
        self.general_error = None
        self.last_error = None
        self.step = WizardStep.SUBMITTING
        try:
            appointment = self.store.create_appointment(command)
        except ServiceError as exc:
            if self.step is WizardStep.CANCELLED:
                raise
            self.step = WizardStep.CONFIRMING
            self.general_error = exc.message
            self.last_error = exc
            logger.warning('Booking failed for doctor %s at %s: %s', command.doctor_id, command.date_time, exc.message)
            raise
        except Exception:
            if self.step is not WizardStep.CANCELLED:
                self.step = WizardStep.CONFIRMING
            raise

        if self.step is WizardStep.CANCELLED:
            logger.info('Discarded booking result for cancelled wizard (doctor %s at %s)', command.doctor_id, command.date_time)
            return None

        self.step = WizardStep.BOOKED
        self.booked_at = self.clock()
        self.confirmation = BookingConfirmation(
            appointment=appointment,
            doctor_name=doctor_name(self.draft.doctor),
            date_time=command.date_time,
            appointment_type=command.appointment_type,
        )
        logger.info('Booked appointment for patient %s with doctor %s at %s', self.patient_id, command.doctor_id, command.date_time)
        return appointment

    def poll(self, now: datetime | None = None) -> bool:
        """Reset a booked wizard once the confirmation has been shown long enough.

        Returns True when the wizard closed.
        """
        if self.step is not WizardStep.BOOKED:
            return False
        now = now or self.clock()
        if now - self.booked_at < self.confirmation_delay:
            return False
        self.reset()
        return True

    # helpers

    def _require_step(self, step: WizardStep) -> None:
        if self.step is not step:
            raise WizardStateError(f'Operation requires {step.value}, wizard is {self.step.value}.')

    def _validate(self, required: dict[str, Any]) -> None:
        messages = {
            'patient': 'Patient ID is required.',
            'doctor': 'Please select a doctor.',
            'date': 'Please select a date.',
            'time': 'Please select a time.',
        }
        errors = {name: messages[name] for name, value in required.items() if value in (None, '')}
        if errors:
            self.field_errors.update(errors)
            raise BookingValidationError(errors)

    def _resolve_selected_doctor(self) -> None:
        if not self.doctors:
            return
        selected_id = self.draft.doctor.id
        for doctor in self.doctors:
            if doctor.id == selected_id:
                self.draft.doctor = doctor
                return
        error = DoctorLookupError()
        self.field_errors.update(error.field_errors)
        raise error
