"""Appointment model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, text

from backend.database import ACTIVE_SLOT_INDEX_NAME, Base
from backend.scheduling.lifecycle import AppointmentStatus, active_status_clause

_ACTIVE_STATUS_CLAUSE = text(active_status_clause())


class Appointment(Base):
    """Represents a booked (or formerly booked) consultation slot."""
    __tablename__ = "appointments"

    id = Column(String(32), primary_key=True)
    patient_name = Column(String(100), nullable=False)
    age = Column(Integer)
    contact_number = Column(String(32))
    address = Column(String(200))
    blood_pressure = Column(String(20))
    doctor_id = Column(String, ForeignKey("doctors.id"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    slot = Column(String(8), nullable=False)
    scheduled_at = Column(DateTime, nullable=False)
    channel = Column(String(10), nullable=False)
    status = Column(String(20), nullable=False, default=AppointmentStatus.SCHEDULED.value)

    payment_status = Column(String(20))
    payment_method = Column(String(32))
    payment_id = Column(String)
    payment_order_id = Column(String)
    payment_signature = Column(String)
    amount = Column(Integer)
    currency = Column(String(3))
    paid_at = Column(DateTime)

    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        # At most one active appointment per doctor, day and slot.
        Index(
            ACTIVE_SLOT_INDEX_NAME,
            "doctor_id",
            "appointment_date",
            "slot",
            unique=True,
            sqlite_where=_ACTIVE_STATUS_CLAUSE,
            postgresql_where=_ACTIVE_STATUS_CLAUSE,
        ),
        Index("idx_appointments_doctor_date", "doctor_id", "appointment_date"),
    )
