"""Patient registry model definitions."""

from sqlalchemy import Column, Date, DateTime, Integer, String
from backend.database import Base


class Patient(Base):
    """A patient profile, keyed by contact number."""
    __tablename__ = "patients"

    id = Column(String(32), primary_key=True)
    contact_number = Column(String(32), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    age = Column(Integer)
    address = Column(String(200))
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class PatientSequence(Base):
    """Per-day counter used to mint human-readable patient ids."""
    __tablename__ = "patient_sequences"

    day = Column(Date, primary_key=True)
    value = Column(Integer, nullable=False, default=0)
