from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.core import config
from clinic_backend.models.appointment import Appointment
from clinic_backend.models.doctor import Doctor
from clinic_backend.routes.dependencies import database_unavailable, ensure_database_ready, get_db
from clinic_backend.scheduling.availability import resolve_available_dates
from clinic_backend.scheduling.lifecycle import AppointmentStatus
from clinic_backend.scheduling.slots import slot_times
from clinic_backend.scheduling.time_format import format_12_hour
from clinic_backend.schemas.doctor import (
    AvailableDatesResponse,
    DoctorDepartmentResponse,
    DoctorResponse,
    DoctorSlotsResponse,
    SlotResponse,
)

router = APIRouter(tags=['doctors'])

MAX_LOOKOUT_DAYS = 90


def get_doctor_or_404(doctor_id: int, db: Session) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if not doctor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Doctor not found.',
        )
    return doctor


def get_booked_times(doctor_id: int, day: date, db: Session) -> set[datetime]:
    day_start = datetime.combine(day, datetime.min.time())
    day_end = day_start + timedelta(days=1)

    rows = db.query(Appointment.date_time).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.status != AppointmentStatus.CANCELLED.value,
        Appointment.date_time >= day_start,
        Appointment.date_time < day_end,
    ).all()

    return {booked_at.replace(second=0, microsecond=0) for (booked_at,) in rows}


@router.get('', response_model=list[DoctorResponse])
def list_doctors(
    specialization: str | None = Query(default=None),
    q: str | None = Query(default=None),
    department_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Doctor)

        if specialization and specialization.strip():
            query = query.filter(func.lower(Doctor.specialization) == specialization.strip().lower())

        if department_id is not None:
            query = query.filter(Doctor.department_id == department_id)

        if q and q.strip():
            pattern = f'%{q.strip().lower()}%'
            query = query.filter(
                func.lower(Doctor.first_name + ' ' + Doctor.last_name).like(pattern)
                | func.lower(Doctor.specialization).like(pattern)
            )

        return query.order_by(Doctor.last_name.asc(), Doctor.first_name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/{doctor_id}', response_model=DoctorResponse)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return get_doctor_or_404(doctor_id, db)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/{doctor_id}/department', response_model=DoctorDepartmentResponse)
def get_doctor_department(doctor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        doctor = get_doctor_or_404(doctor_id, db)
        return DoctorDepartmentResponse(doctor_id=doctor.id, department_id=doctor.department_id)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/{doctor_id}/available-dates', response_model=AvailableDatesResponse)
def list_available_dates(
    doctor_id: int,
    days: int = Query(default=config.BOOKING_HORIZON_DAYS, ge=1, le=MAX_LOOKOUT_DAYS),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        doctor = get_doctor_or_404(doctor_id, db)
        dates = resolve_available_dates(
            doctor.availability,
            days,
            honor_doctor_weekdays=config.HONOR_DOCTOR_WEEKDAYS,
        )
        return AvailableDatesResponse(doctor_id=doctor.id, dates=dates)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/{doctor_id}/slots', response_model=DoctorSlotsResponse)
def list_doctor_slots(
    doctor_id: int,
    slot_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        doctor = get_doctor_or_404(doctor_id, db)
        booked_times = get_booked_times(doctor.id, slot_date, db)

        slots = []
        for slot_time in slot_times():
            slot_start = datetime.combine(slot_date, slot_time)
            slots.append(
                SlotResponse(
                    time=format_12_hour(slot_time),
                    time_24=slot_time.strftime('%H:%M:%S'),
                    is_booked=slot_start in booked_times,
                )
            )

        return DoctorSlotsResponse(doctor_id=doctor.id, date=slot_date, slots=slots)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc
