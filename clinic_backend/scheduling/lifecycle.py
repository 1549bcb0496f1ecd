"""Appointment status state machine and derived display labels."""

from datetime import datetime
from enum import Enum

from clinic_backend.scheduling.errors import InvalidTransitionError


class AppointmentStatus(str, Enum):
    SCHEDULED = 'scheduled'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class AppointmentAction(str, Enum):
    COMPLETE = 'complete'
    CANCEL = 'cancel'
    NO_SHOW = 'no-show'
    RESCHEDULE = 'reschedule'


class AppointmentType(str, Enum):
    REGULAR = 'regular'
    FOLLOW_UP = 'follow-up'
    CONSULTATION = 'consultation'
    EMERGENCY = 'emergency'


TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})

TRANSITIONS = {
    (AppointmentStatus.SCHEDULED, AppointmentAction.COMPLETE): AppointmentStatus.COMPLETED,
    (AppointmentStatus.SCHEDULED, AppointmentAction.CANCEL): AppointmentStatus.CANCELLED,
    # no-show is a presentation label; it is stored as cancelled
    (AppointmentStatus.SCHEDULED, AppointmentAction.NO_SHOW): AppointmentStatus.CANCELLED,
    (AppointmentStatus.SCHEDULED, AppointmentAction.RESCHEDULE): AppointmentStatus.SCHEDULED,
}

TYPE_ALIASES = {
    'check-up': AppointmentType.CONSULTATION,
    'checkup': AppointmentType.CONSULTATION,
    'follow up': AppointmentType.FOLLOW_UP,
    'followup': AppointmentType.FOLLOW_UP,
}

# Requested target statuses that map onto an action.
STATUS_REQUEST_ACTIONS = {
    'completed': AppointmentAction.COMPLETE,
    'cancelled': AppointmentAction.CANCEL,
    'canceled': AppointmentAction.CANCEL,
    'no-show': AppointmentAction.NO_SHOW,
}


def normalize_status(value: str | AppointmentStatus) -> AppointmentStatus:
    try:
        return AppointmentStatus(str(getattr(value, 'value', value)).strip().lower())
    except ValueError as exc:
        raise ValueError(f'Invalid appointment status: {value!r}.') from exc


def normalize_appointment_type(value: str | AppointmentType) -> AppointmentType:
    normalized = str(getattr(value, 'value', value)).strip().lower()
    if normalized in TYPE_ALIASES:
        return TYPE_ALIASES[normalized]
    try:
        return AppointmentType(normalized)
    except ValueError as exc:
        raise ValueError('Invalid appointment type.') from exc


def is_terminal(status: str | AppointmentStatus) -> bool:
    return normalize_status(status) in TERMINAL_STATUSES


def allowed_actions(status: str | AppointmentStatus) -> list[AppointmentAction]:
    current = normalize_status(status)
    return [action for (source, action) in TRANSITIONS if source == current]


def transition(status: str | AppointmentStatus, action: str | AppointmentAction) -> AppointmentStatus:
    current = normalize_status(status)
    try:
        requested = AppointmentAction(str(getattr(action, 'value', action)).strip().lower())
    except ValueError as exc:
        raise ValueError(f'Unknown appointment action: {action!r}.') from exc

    target = TRANSITIONS.get((current, requested))
    if target is None:
        raise InvalidTransitionError(current.value, requested.value)
    return target


def action_for_status_request(requested_status: str) -> AppointmentAction | None:
    """Map an update's requested status onto the action that reaches it.

    Returns None when the request asks for ``scheduled``, which is not a
    transition but a no-op for a scheduled appointment.
    """
    normalized = requested_status.strip().lower()
    if normalized == AppointmentStatus.SCHEDULED.value:
        return None
    if normalized not in STATUS_REQUEST_ACTIONS:
        raise ValueError(f'Invalid appointment status: {requested_status!r}.')
    return STATUS_REQUEST_ACTIONS[normalized]


def display_label(
    status: str | AppointmentStatus,
    date_time: datetime,
    previous_date_time: datetime | None = None,
    status_changed_at: datetime | None = None,
) -> str:
    current = normalize_status(status)

    if current is AppointmentStatus.CANCELLED and status_changed_at is not None and status_changed_at >= date_time:
        return 'no-show'
    if current is AppointmentStatus.SCHEDULED and previous_date_time is not None:
        return 'rescheduled'
    return current.value
