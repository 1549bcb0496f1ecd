from clinic_backend.models.department import Department
from clinic_backend.models.doctor import Doctor
from clinic_backend.seed_data import DEMO_DOCTORS, seed


def test_seed_is_idempotent(db_session) -> None:
    first = seed(db_session)
    second = seed(db_session)

    assert first == {'departments': 3, 'doctors': 3, 'patients': 1}
    assert second == {'departments': 0, 'doctors': 0, 'patients': 0}
    assert db_session.query(Doctor).count() == len(DEMO_DOCTORS)


def test_seeded_doctors_belong_to_their_departments(db_session) -> None:
    seed(db_session)

    jane = db_session.query(Doctor).filter(Doctor.last_name == 'Doe').one()
    department = db_session.query(Department).filter(Department.id == jane.department_id).one()

    assert department.name == 'Cardiology'
    assert jane.availability['monday'] == ['09:00-17:00']
