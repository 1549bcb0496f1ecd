"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from clinic_backend.database import Base


class Appointment(Base):
    """Represents a booked appointment at a single instant."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    date_time = Column(DateTime, nullable=False)
    appointment_type = Column(String, default="regular")
    status = Column(String, default="scheduled")  # scheduled/completed/cancelled
    notes = Column(String)
    symptoms = Column(String)
    idempotency_key = Column(String, unique=True, nullable=True)
    previous_date_time = Column(DateTime, nullable=True)
    status_changed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
