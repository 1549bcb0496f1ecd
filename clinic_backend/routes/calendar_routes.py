from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from clinic_backend.routes.appointment_routes import list_window
from clinic_backend.routes.dependencies import get_db
from clinic_backend.scheduling.calendar_grid import (
    CalendarCell,
    build_month_grid,
    build_week_grid,
    month_window,
    week_window,
)
from clinic_backend.scheduling.time_format import clinic_today
from clinic_backend.schemas.appointment import CalendarCellResponse

router = APIRouter(tags=['calendar'])


def to_cell_responses(cells: list[CalendarCell]) -> list[CalendarCellResponse]:
    return [
        CalendarCellResponse(
            date=cell.date,
            is_current_period=cell.is_current_period,
            is_today=cell.is_today,
            appointments=cell.appointments,
        )
        for cell in cells
    ]


@router.get('/month/{year}/{month}', response_model=list[CalendarCellResponse])
def month_calendar(
    year: int,
    month: int,
    doctor_id: int | None = Query(default=None),
    department_id: int | None = Query(default=None),
    appointment_status: str | None = Query(default=None, alias='status'),
    appointment_type: str | None = Query(default=None, alias='type'),
    db: Session = Depends(get_db),
):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='month must be between 1 and 12.')

    start_date, end_date = month_window(year, month)
    appointments = list_window(
        db,
        start_date,
        end_date,
        doctor_id=doctor_id,
        department_id=department_id,
        appointment_status=appointment_status,
        appointment_type=appointment_type,
    )
    return to_cell_responses(build_month_grid(year, month, appointments))


@router.get('/week', response_model=list[CalendarCellResponse])
def week_calendar(
    reference_date: date | None = Query(default=None, alias='date'),
    doctor_id: int | None = Query(default=None),
    department_id: int | None = Query(default=None),
    appointment_status: str | None = Query(default=None, alias='status'),
    appointment_type: str | None = Query(default=None, alias='type'),
    db: Session = Depends(get_db),
):
    reference_date = reference_date or clinic_today()
    start_date, end_date = week_window(reference_date)
    appointments = list_window(
        db,
        start_date,
        end_date,
        doctor_id=doctor_id,
        department_id=department_id,
        appointment_status=appointment_status,
        appointment_type=appointment_type,
    )
    return to_cell_responses(build_week_grid(reference_date, appointments))
