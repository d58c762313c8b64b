"""Doctor model definitions."""

from sqlalchemy import Column, String
from backend.database import Base


class Doctor(Base):
    """A doctor patients can book with. Maintained outside the booking flow."""
    __tablename__ = "doctors"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    specialty = Column(String)
