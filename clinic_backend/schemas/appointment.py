from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, field_validator

from clinic_backend.core import config
from clinic_backend.scheduling.lifecycle import (
    AppointmentStatus,
    STATUS_REQUEST_ACTIONS,
    normalize_appointment_type,
)


def _normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


class CreateAppointmentRequest(BaseModel):
    """Creation command emitted by the booking wizard."""

    patient_id: int
    doctor_id: int
    department_id: int | None = None
    date_time: datetime
    appointment_type: str = 'regular'
    status: str = AppointmentStatus.SCHEDULED.value
    notes: str | None = None
    symptoms: str | None = None
    idempotency_key: str | None = None

    @field_validator('appointment_type')
    @classmethod
    def validate_appointment_type(cls, value: str) -> str:
        return normalize_appointment_type(value).value

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized != AppointmentStatus.SCHEDULED.value:
            raise ValueError('New appointments must start as scheduled.')
        return normalized

    @field_validator('notes', 'symptoms')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)

    @field_validator('idempotency_key')
    @classmethod
    def validate_idempotency_key(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None


class UpdateAppointmentRequest(BaseModel):
    """Partial update used for rescheduling and status transitions."""

    date_time: datetime | None = None
    status: str | None = None
    appointment_type: str | None = None
    notes: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized != AppointmentStatus.SCHEDULED.value and normalized not in STATUS_REQUEST_ACTIONS:
            raise ValueError('Invalid appointment status.')
        return normalized

    @field_validator('appointment_type')
    @classmethod
    def validate_appointment_type(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_appointment_type(value).value

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    doctor_id: int
    department_id: int | None = None
    date_time: datetime
    appointment_type: str
    status: str
    notes: str | None = None
    symptoms: str | None = None
    patient_name: str | None = None
    doctor_name: str | None = None
    department_name: str | None = None
    display_status: str | None = None
    previous_date_time: datetime | None = None


class CalendarCellResponse(BaseModel):
    date: date
    is_current_period: bool
    is_today: bool
    appointments: list[AppointmentResponse]
