"""HTTP client for the scheduling service.

Implements the persistence operations the booking wizard and calendar views
depend on. Every request carries a timeout; transport failures and timeouts
become retryable ``ServiceUnavailableError``/``ServiceTimeoutError`` and HTTP
error statuses are mapped onto the scheduling error taxonomy.
"""

import logging
from datetime import date, datetime
from typing import Any

import httpx

from clinic_backend.core import config
from clinic_backend.scheduling.errors import (
    NotFoundError,
    ServiceError,
    ServiceTimeoutError,
    ServiceUnavailableError,
    SlotConflictError,
)
from clinic_backend.scheduling.lifecycle import AppointmentAction, transition
from clinic_backend.schemas.appointment import (
    AppointmentResponse,
    CalendarCellResponse,
    CreateAppointmentRequest,
    UpdateAppointmentRequest,
)
from clinic_backend.schemas.doctor import AvailableDatesResponse, DepartmentResponse, DoctorResponse, DoctorSlotsResponse

logger = logging.getLogger(__name__)


def _query_params(params: dict[str, Any]) -> dict[str, Any]:
    cleaned = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        elif hasattr(value, 'value'):
            value = value.value
        cleaned[key] = value
    return cleaned


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase

    detail = payload.get('detail') if isinstance(payload, dict) else payload
    if isinstance(detail, list):
        # pydantic validation errors
        return '; '.join(str(item.get('msg', item)) if isinstance(item, dict) else str(item) for item in detail)
    return str(detail)


class SchedulingApiClient:
    def __init__(
        self,
        base_url: str = config.API_BASE_URL,
        timeout: float = config.SERVICE_TIMEOUT_SECONDS,
        http_client: httpx.Client | None = None,
    ):
        self.timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> 'SchedulingApiClient':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        kwargs.setdefault('timeout', self.timeout)
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning('%s %s timed out after %ss', method, path, self.timeout)
            raise ServiceTimeoutError('The scheduling service did not respond in time. Please try again.') from exc
        except httpx.TransportError as exc:
            logger.warning('%s %s failed: %s', method, path, exc)
            raise ServiceUnavailableError('The scheduling service is unreachable. Please try again.') from exc

        if response.is_success:
            return response

        detail = _error_detail(response)
        logger.warning('%s %s returned %s: %s', method, path, response.status_code, detail)
        if response.status_code == httpx.codes.CONFLICT:
            raise SlotConflictError(detail, status_code=response.status_code)
        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError(detail, status_code=response.status_code)
        if response.status_code >= 500:
            raise ServiceUnavailableError(detail, status_code=response.status_code)
        raise ServiceError(detail, status_code=response.status_code)

    # doctors and departments

    def list_doctors(self, specialization: str | None = None, search: str | None = None) -> list[DoctorResponse]:
        response = self._request('GET', '/doctors', params=_query_params({'specialization': specialization, 'q': search}))
        return [DoctorResponse.model_validate(item) for item in response.json()]

    def get_doctor(self, doctor_id: int) -> DoctorResponse:
        return DoctorResponse.model_validate(self._request('GET', f'/doctors/{doctor_id}').json())

    def get_doctor_department(self, doctor_id: int) -> int | None:
        return self._request('GET', f'/doctors/{doctor_id}/department').json()['department_id']

    def list_available_dates(self, doctor_id: int, days: int = config.BOOKING_HORIZON_DAYS) -> list[date]:
        response = self._request('GET', f'/doctors/{doctor_id}/available-dates', params={'days': days})
        return AvailableDatesResponse.model_validate(response.json()).dates

    def list_doctor_slots(self, doctor_id: int, day: date) -> DoctorSlotsResponse:
        response = self._request('GET', f'/doctors/{doctor_id}/slots', params={'date': day.isoformat()})
        return DoctorSlotsResponse.model_validate(response.json())

    def list_departments(self) -> list[DepartmentResponse]:
        return [DepartmentResponse.model_validate(item) for item in self._request('GET', '/departments').json()]

    # appointments

    def list_appointments(self, **filters: Any) -> list[AppointmentResponse]:
        response = self._request('GET', '/appointments', params=_query_params(filters))
        return [AppointmentResponse.model_validate(item) for item in response.json()]

    def get_appointment(self, appointment_id: int) -> AppointmentResponse:
        return AppointmentResponse.model_validate(self._request('GET', f'/appointments/{appointment_id}').json())

    def create_appointment(self, command: CreateAppointmentRequest) -> AppointmentResponse:
        response = self._request('POST', '/appointments', json=command.model_dump(mode='json'))
        return AppointmentResponse.model_validate(response.json())

    def update_appointment(self, appointment_id: int, **fields: Any) -> AppointmentResponse:
        payload = UpdateAppointmentRequest(**fields).model_dump(mode='json', exclude_unset=True)
        response = self._request('PUT', f'/appointments/{appointment_id}', json=payload)
        return AppointmentResponse.model_validate(response.json())

    def delete_appointment(self, appointment_id: int) -> None:
        self._request('DELETE', f'/appointments/{appointment_id}')

    def apply_action(
        self,
        appointment: AppointmentResponse,
        action: AppointmentAction | str,
        new_date_time: datetime | None = None,
    ) -> AppointmentResponse:
        """Run a lifecycle action, rejecting invalid transitions before any request."""
        action = AppointmentAction(getattr(action, 'value', action))
        transition(appointment.status, action)

        if action is AppointmentAction.RESCHEDULE:
            if new_date_time is None:
                raise ValueError('Rescheduling needs a new date and time.')
            return self.update_appointment(appointment.id, date_time=new_date_time)

        requested_status = {
            AppointmentAction.COMPLETE: 'completed',
            AppointmentAction.CANCEL: 'cancelled',
            AppointmentAction.NO_SHOW: 'no-show',
        }[action]
        return self.update_appointment(appointment.id, status=requested_status)

    # calendar

    def month_calendar(self, year: int, month: int, **filters: Any) -> list[CalendarCellResponse]:
        response = self._request('GET', f'/calendar/month/{year}/{month}', params=_query_params(filters))
        return [CalendarCellResponse.model_validate(item) for item in response.json()]

    def week_calendar(self, reference_date: date, **filters: Any) -> list[CalendarCellResponse]:
        params = _query_params({'date': reference_date, **filters})
        response = self._request('GET', '/calendar/week', params=params)
        return [CalendarCellResponse.model_validate(item) for item in response.json()]
