"""Department model definitions."""

from sqlalchemy import Column, Integer, String
from clinic_backend.database import Base


class Department(Base):
    """Groups doctors and appointments."""
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String)
