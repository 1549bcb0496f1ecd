"""Errors raised by the scheduling core and the persistence client."""


class SchedulingError(Exception):
    """Base class for every scheduling failure. None of them are fatal."""


class BookingValidationError(SchedulingError):
    """Local validation failed before any request was sent."""

    def __init__(self, field_errors: dict[str, str]):
        self.field_errors = dict(field_errors)
        super().__init__('; '.join(f'{field}: {message}' for field, message in self.field_errors.items()))


class DoctorLookupError(BookingValidationError):
    """The selected doctor can no longer be resolved to an id."""

    def __init__(self, message: str = 'Selected doctor is no longer available. Please choose again.'):
        super().__init__({'doctor': message})


class ServiceError(SchedulingError):
    """The persistence service rejected or failed a request."""

    retryable = False
    requires_new_slot = False

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ServiceUnavailableError(ServiceError):
    retryable = True


class ServiceTimeoutError(ServiceUnavailableError):
    pass


class SlotConflictError(ServiceError):
    """The doctor already has an appointment at the requested instant."""

    requires_new_slot = True


class NotFoundError(ServiceError):
    pass


class InvalidTransitionError(SchedulingError):
    def __init__(self, status: str, action: str):
        self.status = status
        self.action = action
        super().__init__(f'Cannot {action} an appointment that is {status}.')


class WizardStateError(SchedulingError):
    """The requested wizard operation is not allowed in its current step."""
