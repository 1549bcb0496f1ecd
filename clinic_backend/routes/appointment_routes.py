import calendar
import logging
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query as SqlQuery, Session

from clinic_backend.core import config
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.department import Department
from clinic_backend.models.doctor import Doctor
from clinic_backend.models.patient import Patient
from clinic_backend.routes.dependencies import database_unavailable, ensure_database_ready, get_db
from clinic_backend.scheduling.errors import InvalidTransitionError
from clinic_backend.scheduling.lifecycle import (
    AppointmentAction,
    AppointmentStatus,
    action_for_status_request,
    display_label,
    normalize_appointment_type,
    normalize_status,
    transition,
)
from clinic_backend.scheduling.time_format import clinic_now, clinic_timezone
from clinic_backend.schemas.appointment import (
    AppointmentResponse,
    CreateAppointmentRequest,
    UpdateAppointmentRequest,
)

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)


def day_bounds(start_day: date, end_day: date) -> tuple[datetime, datetime]:
    """Half-open datetime range covering start_day through end_day inclusive."""
    return datetime.combine(start_day, datetime.min.time()), datetime.combine(end_day + timedelta(days=1), datetime.min.time())


def normalize_instant(value: datetime) -> datetime:
    # stored instants are naive clinic-local time
    if value.tzinfo is not None:
        value = value.astimezone(clinic_timezone()).replace(tzinfo=None)
    return value.replace(second=0, microsecond=0)


def serialize_appointments(appointments: list[Appointment], db: Session) -> list[AppointmentResponse]:
    doctor_ids = {appointment.doctor_id for appointment in appointments}
    patient_ids = {appointment.patient_id for appointment in appointments}
    department_ids = {appointment.department_id for appointment in appointments if appointment.department_id}

    doctors = {doctor.id: doctor for doctor in db.query(Doctor).filter(Doctor.id.in_(doctor_ids)).all()} if doctor_ids else {}
    patients = {patient.id: patient for patient in db.query(Patient).filter(Patient.id.in_(patient_ids)).all()} if patient_ids else {}
    departments = (
        {department.id: department for department in db.query(Department).filter(Department.id.in_(department_ids)).all()}
        if department_ids
        else {}
    )

    responses = []
    for appointment in appointments:
        doctor = doctors.get(appointment.doctor_id)
        patient = patients.get(appointment.patient_id)
        department = departments.get(appointment.department_id)
        responses.append(
            AppointmentResponse(
                id=appointment.id,
                patient_id=appointment.patient_id,
                doctor_id=appointment.doctor_id,
                department_id=appointment.department_id,
                date_time=appointment.date_time,
                appointment_type=appointment.appointment_type or 'regular',
                status=appointment.status or AppointmentStatus.SCHEDULED.value,
                notes=appointment.notes,
                symptoms=appointment.symptoms,
                patient_name=patient.full_name if patient else None,
                doctor_name=doctor.full_name if doctor else None,
                department_name=department.name if department else None,
                display_status=display_label(
                    appointment.status or AppointmentStatus.SCHEDULED.value,
                    appointment.date_time,
                    appointment.previous_date_time,
                    appointment.status_changed_at,
                ),
                previous_date_time=appointment.previous_date_time,
            )
        )
    return responses


def filter_appointments(
    query: SqlQuery,
    start_date: date | None = None,
    end_date: date | None = None,
    doctor_id: int | None = None,
    department_id: int | None = None,
    patient_id: int | None = None,
    appointment_status: str | None = None,
    appointment_type: str | None = None,
) -> SqlQuery:
    if start_date is not None and end_date is not None and end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='end_date must not be before start_date.',
        )

    if start_date is not None:
        query = query.filter(Appointment.date_time >= day_bounds(start_date, start_date)[0])
    if end_date is not None:
        query = query.filter(Appointment.date_time < day_bounds(end_date, end_date)[1])
    if doctor_id is not None:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if department_id is not None:
        query = query.filter(Appointment.department_id == department_id)
    if patient_id is not None:
        query = query.filter(Appointment.patient_id == patient_id)
    if appointment_status:
        try:
            normalized_status = normalize_status(appointment_status)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        query = query.filter(Appointment.status == normalized_status.value)
    if appointment_type:
        try:
            normalized_type = normalize_appointment_type(appointment_type)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        query = query.filter(Appointment.appointment_type == normalized_type.value)

    return query


def get_appointment_or_404(appointment_id: int, db: Session) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    return appointment


def find_conflicting_appointment(
    doctor_id: int,
    date_time: datetime,
    db: Session,
    exclude_id: int | None = None,
) -> Appointment | None:
    query = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date_time == date_time,
        Appointment.status != AppointmentStatus.CANCELLED.value,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.first()


def ensure_slot_is_free(doctor_id: int, date_time: datetime, db: Session, exclude_id: int | None = None) -> None:
    if not config.ENFORCE_SLOT_UNIQUENESS:
        return
    if find_conflicting_appointment(doctor_id, date_time, db, exclude_id=exclude_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='This time is already booked.',
        )


def list_window(
    db: Session,
    start_date: date | None,
    end_date: date | None,
    doctor_id: int | None = None,
    department_id: int | None = None,
    patient_id: int | None = None,
    appointment_status: str | None = None,
    appointment_type: str | None = None,
) -> list[AppointmentResponse]:
    ensure_database_ready()

    try:
        query = filter_appointments(
            db.query(Appointment),
            start_date=start_date,
            end_date=end_date,
            doctor_id=doctor_id,
            department_id=department_id,
            patient_id=patient_id,
            appointment_status=appointment_status,
            appointment_type=appointment_type,
        )
        appointments = query.order_by(Appointment.date_time.asc(), Appointment.id.asc()).all()
        return serialize_appointments(appointments, db)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    year: int | None = Query(default=None, ge=1, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    day: date | None = Query(default=None),
    doctor_id: int | None = Query(default=None),
    department_id: int | None = Query(default=None),
    patient_id: int | None = Query(default=None),
    appointment_status: str | None = Query(default=None, alias='status'),
    appointment_type: str | None = Query(default=None, alias='type'),
    db: Session = Depends(get_db),
):
    if (year is None) != (month is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='year and month must be given together.',
        )

    if day is not None:
        start_date, end_date = day, day
    elif year is not None:
        start_date = date(year, month, 1)
        end_date = date(year, month, calendar.monthrange(year, month)[1])

    return list_window(
        db,
        start_date,
        end_date,
        doctor_id,
        department_id,
        patient_id,
        appointment_status,
        appointment_type,
    )


@router.get('/month/{year}/{month}', response_model=list[AppointmentResponse])
def list_month_appointments(
    year: int,
    month: int,
    doctor_id: int | None = Query(default=None),
    department_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='month must be between 1 and 12.')

    start_date = date(year, month, 1)
    end_date = date(year, month, calendar.monthrange(year, month)[1])
    return list_window(db, start_date, end_date, doctor_id, department_id)


@router.get('/day/{day}', response_model=list[AppointmentResponse])
def list_day_appointments(
    day: date,
    doctor_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    return list_window(db, day, day, doctor_id)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)
        return serialize_appointments([appointment], db)[0]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        if data.idempotency_key:
            existing = db.query(Appointment).filter(Appointment.idempotency_key == data.idempotency_key).first()
            if existing:
                logger.info('Replayed booking request %s returned appointment %s', data.idempotency_key, existing.id)
                return serialize_appointments([existing], db)[0]

        date_time = normalize_instant(data.date_time)
        if date_time <= clinic_now():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Appointments must be scheduled in the future.',
            )

        if not db.query(Patient).filter(Patient.id == data.patient_id).first():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Patient not found.',
            )

        doctor = db.query(Doctor).filter(Doctor.id == data.doctor_id).first()
        if not doctor:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Doctor not found.',
            )

        department_id = data.department_id if data.department_id is not None else doctor.department_id
        if department_id is not None and not db.query(Department).filter(Department.id == department_id).first():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Department not found.',
            )

        ensure_slot_is_free(doctor.id, date_time, db)

        appointment = Appointment(
            patient_id=data.patient_id,
            doctor_id=doctor.id,
            department_id=department_id,
            date_time=date_time,
            appointment_type=data.appointment_type,
            status=AppointmentStatus.SCHEDULED.value,
            notes=data.notes,
            symptoms=data.symptoms,
            idempotency_key=data.idempotency_key,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        logger.info('Created appointment %s for doctor %s at %s', appointment.id, doctor.id, date_time)
        return serialize_appointments([appointment], db)[0]
    except IntegrityError as exc:
        db.rollback()
        if data.idempotency_key:
            existing = db.query(Appointment).filter(Appointment.idempotency_key == data.idempotency_key).first()
            if existing:
                return serialize_appointments([existing], db)[0]
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='This time is already booked.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(appointment_id: int, data: UpdateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)
        current_status = appointment.status or AppointmentStatus.SCHEDULED.value
        now = clinic_now()

        try:
            if data.date_time is not None:
                new_date_time = normalize_instant(data.date_time)
                if new_date_time != appointment.date_time:
                    transition(current_status, AppointmentAction.RESCHEDULE)
                    ensure_slot_is_free(appointment.doctor_id, new_date_time, db, exclude_id=appointment.id)
                    appointment.previous_date_time = appointment.date_time
                    appointment.date_time = new_date_time
                    logger.info('Rescheduled appointment %s to %s', appointment.id, new_date_time)

            if data.status is not None:
                action = action_for_status_request(data.status)
                if action is None:
                    if normalize_status(current_status) is not AppointmentStatus.SCHEDULED:
                        raise InvalidTransitionError(current_status, 'reopen')
                else:
                    new_status = transition(current_status, action)
                    appointment.status = new_status.value
                    appointment.status_changed_at = now
                    logger.info('Appointment %s moved from %s to %s via %s', appointment.id, current_status, new_status.value, action.value)
        except InvalidTransitionError as exc:
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(exc),
            ) from exc

        if data.appointment_type is not None:
            appointment.appointment_type = data.appointment_type
        if 'notes' in data.model_fields_set:
            appointment.notes = data.notes

        db.commit()
        db.refresh(appointment)
        return serialize_appointments([appointment], db)[0]
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)
        db.delete(appointment)
        db.commit()
        logger.info('Deleted appointment %s', appointment_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
