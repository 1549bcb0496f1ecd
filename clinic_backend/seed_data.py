"""Seed demo departments, doctors and a patient into the configured database.

Usage:
    python -m clinic_backend.seed_data
"""
import sys

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.database import Base, SessionLocal, engine
from clinic_backend.models.department import Department
from clinic_backend.models.doctor import Doctor
from clinic_backend.models.patient import Patient
from clinic_backend.models import appointment  # noqa: F401

DEMO_DEPARTMENTS = ['Cardiology', 'Neurology', 'Pediatrics']

DEMO_DOCTORS = [
    {
        'first_name': 'Jane',
        'last_name': 'Doe',
        'specialization': 'Cardiology',
        'department': 'Cardiology',
        'availability': {'monday': ['09:00-17:00'], 'wednesday': ['09:00-17:00'], 'friday': ['09:00-17:00']},
    },
    {
        'first_name': 'John',
        'last_name': 'Smith',
        'specialization': 'Neurology',
        'department': 'Neurology',
        'availability': {'tuesday': ['09:00-17:00'], 'thursday': ['09:00-17:00']},
    },
    {
        'first_name': 'Emily',
        'last_name': 'Johnson',
        'specialization': 'Pediatrics',
        'department': 'Pediatrics',
        'availability': {'monday': ['13:00-20:00'], 'wednesday': ['13:00-20:00'], 'friday': ['09:00-14:00']},
    },
]

DEMO_PATIENT = {'first_name': 'Alex', 'last_name': 'Patient', 'email': 'alex.patient@example.com'}


def seed(db: Session) -> dict[str, int]:
    """Insert any missing demo rows. Returns how many rows of each kind were added."""
    added = {'departments': 0, 'doctors': 0, 'patients': 0}

    departments = {department.name: department for department in db.query(Department).all()}
    for name in DEMO_DEPARTMENTS:
        if name not in departments:
            departments[name] = Department(name=name)
            db.add(departments[name])
            added['departments'] += 1
    db.flush()

    for entry in DEMO_DOCTORS:
        exists = db.query(Doctor).filter(
            Doctor.first_name == entry['first_name'],
            Doctor.last_name == entry['last_name'],
        ).first()
        if exists:
            continue
        db.add(
            Doctor(
                first_name=entry['first_name'],
                last_name=entry['last_name'],
                specialization=entry['specialization'],
                department_id=departments[entry['department']].id,
                availability=entry['availability'],
            )
        )
        added['doctors'] += 1

    if not db.query(Patient).filter(Patient.email == DEMO_PATIENT['email']).first():
        db.add(Patient(**DEMO_PATIENT))
        added['patients'] += 1

    db.commit()
    return added


def main() -> None:
    db = SessionLocal()
    try:
        Base.metadata.create_all(bind=engine)
        added = seed(db)
    except SQLAlchemyError as exc:
        db.rollback()
        print('Seeding failed:', exc, file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()

    print(', '.join(f'{count} {kind}' for kind, count in added.items()), 'added.')


if __name__ == '__main__':
    main()
