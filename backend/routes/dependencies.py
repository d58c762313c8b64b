from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from backend.database import SessionLocal, ensure_appointment_schema
from backend.scheduling.booking import BookingService
from backend.scheduling.patients import PatientRegistry
from backend.scheduling.slots import SlotCatalog

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and retry.'


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_slot_catalog() -> SlotCatalog:
    return SlotCatalog()


def get_booking_service() -> BookingService:
    return BookingService(
        SessionLocal,
        catalog=get_slot_catalog(),
        registry=PatientRegistry(SessionLocal),
    )
