from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.models.department import Department
from clinic_backend.routes.dependencies import database_unavailable, ensure_database_ready, get_db
from clinic_backend.schemas.doctor import DepartmentResponse

router = APIRouter(tags=['departments'])


@router.get('', response_model=list[DepartmentResponse])
def list_departments(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Department).order_by(Department.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc
