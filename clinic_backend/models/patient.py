"""Patient model definitions."""

from sqlalchemy import Column, Integer, String
from clinic_backend.database import Base


class Patient(Base):
    """Represents a patient who books appointments."""
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
