from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models.appointment import Appointment
from backend.scheduling.errors import StorageUnavailable
from backend.scheduling.lifecycle import active_status_values
from backend.scheduling.slots import SlotCatalog


def booked_slots(db: Session, doctor_id: str, appointment_date: date) -> set[str]:
    """Slot labels held by active appointments for one doctor on one day."""
    try:
        rows = db.query(Appointment.slot).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == appointment_date,
            Appointment.status.in_(active_status_values()),
        ).all()
    except SQLAlchemyError as exc:
        raise StorageUnavailable('Could not read booked slots.') from exc

    return {slot for (slot,) in rows}


def is_future_slot(catalog: SlotCatalog, appointment_date: date, slot: str, now: datetime) -> bool:
    return catalog.combine(appointment_date, slot) > now


def free_slots(
    db: Session,
    catalog: SlotCatalog,
    doctor_id: str,
    appointment_date: date,
    now: datetime,
) -> list[str]:
    booked = booked_slots(db, doctor_id, appointment_date)
    return [
        slot
        for slot in catalog.all_slots()
        if slot not in booked and is_future_slot(catalog, appointment_date, slot, now)
    ]


def suggest_slots(
    catalog: SlotCatalog,
    booked: set[str],
    requested_slot: str,
    appointment_date: date,
    now: datetime,
    limit: int = 3,
) -> list[str]:
    """Propose up to ``limit`` open slots later in the day than ``requested_slot``.

    Suggestions never move a patient earlier. If the requested slot is not
    part of the catalog, any open future slots are offered instead.
    """
    requested_position = catalog.index_of(requested_slot)

    suggestions: list[str] = []
    for position, slot in enumerate(catalog.all_slots()):
        if len(suggestions) >= limit:
            break
        if requested_position is not None and position <= requested_position:
            continue
        if slot in booked or not is_future_slot(catalog, appointment_date, slot, now):
            continue
        suggestions.append(slot)

    return suggestions
