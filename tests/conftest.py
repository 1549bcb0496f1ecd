import os
from datetime import date, datetime, time, timedelta

os.environ.setdefault('DATABASE_URL', 'sqlite://')

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from clinic_backend.database import Base  # noqa: E402
from clinic_backend.main import app  # noqa: E402
from clinic_backend.models.appointment import Appointment  # noqa: E402
from clinic_backend.models.department import Department  # noqa: E402
from clinic_backend.models.doctor import Doctor  # noqa: E402
from clinic_backend.models.patient import Patient  # noqa: E402
from clinic_backend.routes.dependencies import get_db  # noqa: E402
from clinic_backend.scheduling.time_format import clinic_today  # noqa: E402


def next_monday(today: date | None = None) -> date:
    today = today or clinic_today()
    return today + timedelta(days=7 - today.weekday())


def next_monday_at(hour: int, minute: int = 0) -> datetime:
    return datetime.combine(next_monday(), time(hour, minute))


@pytest.fixture
def db_session():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def api_client(db_session, monkeypatch: pytest.MonkeyPatch):
    for module in ('appointment_routes', 'doctor_routes', 'department_routes'):
        monkeypatch.setattr(f'clinic_backend.routes.{module}.ensure_database_ready', lambda: None)

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def seeded(db_session) -> dict:
    cardiology = Department(name='Cardiology')
    neurology = Department(name='Neurology')
    db_session.add_all([cardiology, neurology])
    db_session.flush()

    jane = Doctor(
        first_name='Jane',
        last_name='Doe',
        specialization='Cardiology',
        department_id=cardiology.id,
        availability={'monday': ['09:00-17:00']},
    )
    john = Doctor(
        first_name='John',
        last_name='Smith',
        specialization='Neurology',
        department_id=neurology.id,
        availability={'tuesday': ['09:00-17:00'], 'thursday': ['09:00-17:00']},
    )
    patient = Patient(first_name='Alex', last_name='Patient', email='alex@example.com')
    db_session.add_all([jane, john, patient])
    db_session.commit()

    return {
        'cardiology_id': cardiology.id,
        'neurology_id': neurology.id,
        'jane_id': jane.id,
        'john_id': john.id,
        'patient_id': patient.id,
    }


@pytest.fixture
def add_appointment(db_session):
    def _add(**fields) -> Appointment:
        fields.setdefault('appointment_type', 'regular')
        fields.setdefault('status', 'scheduled')
        appointment = Appointment(**fields)
        db_session.add(appointment)
        db_session.commit()
        db_session.refresh(appointment)
        return appointment

    return _add
