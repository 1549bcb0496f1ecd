"""Doctor model definitions."""

from sqlalchemy import JSON, Column, ForeignKey, Integer, String
from clinic_backend.database import Base


class Doctor(Base):
    """Represents a doctor and their recurring weekly availability."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    specialization = Column(String, nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    email = Column(String, unique=True, nullable=True)
    phone = Column(String, nullable=True)
    availability = Column(JSON, default=dict)  # {"monday": ["09:00-17:00"]}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
