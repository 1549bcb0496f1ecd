from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_backend.core import config


connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(config.DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_doctor_schema_checked = False
_appointment_schema_checked = False


def ensure_doctor_schema() -> None:
    global _doctor_schema_checked

    if _doctor_schema_checked:
        return

    with _schema_lock:
        if _doctor_schema_checked:
            return

        inspector = inspect(engine)

        if 'doctors' not in inspector.get_table_names():
            _doctor_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('doctors')}
        migration_steps = [
            ('availability', 'ALTER TABLE doctors ADD COLUMN availability JSON'),
            ('department_id', 'ALTER TABLE doctors ADD COLUMN department_id INTEGER'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_doctors_specialization ON doctors(specialization)')
            )

        _doctor_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('symptoms', 'ALTER TABLE appointments ADD COLUMN symptoms VARCHAR'),
            ('idempotency_key', 'ALTER TABLE appointments ADD COLUMN idempotency_key VARCHAR'),
            ('previous_date_time', 'ALTER TABLE appointments ADD COLUMN previous_date_time TIMESTAMP'),
            ('status_changed_at', 'ALTER TABLE appointments ADD COLUMN status_changed_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date_time ON appointments(doctor_id, date_time)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_status_date_time ON appointments(status, date_time)')
            )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_idempotency_key '
                    'ON appointments(idempotency_key)'
                )
            )

        _appointment_schema_checked = True
