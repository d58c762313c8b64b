import logging
from datetime import date, datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from backend.core import config
from backend.models.patient import Patient, PatientSequence

logger = logging.getLogger(__name__)

MAX_REGISTRATION_ATTEMPTS = 3


def format_patient_id(prefix: str, day: date, sequence: int) -> str:
    return f'{prefix}{day:%Y%m%d}{sequence:04d}'


def next_sequence(db: Session, day: date) -> int:
    """Advance the counter for ``day`` inside the caller's transaction.

    The increment is a single UPDATE so two registrations on the same day
    can never read the same value. The first registration of a day inserts
    the row; a concurrent insert surfaces as IntegrityError for the caller
    to retry.
    """
    result = db.execute(
        update(PatientSequence)
        .where(PatientSequence.day == day)
        .values(value=PatientSequence.value + 1)
    )
    if result.rowcount == 0:
        db.add(PatientSequence(day=day, value=1))
        db.flush()
        return 1

    return db.query(PatientSequence.value).filter(PatientSequence.day == day).scalar()


class PatientRegistry:
    """Look up or create patient profiles keyed by contact number."""

    def __init__(self, session_factory: sessionmaker, id_prefix: str = config.PATIENT_ID_PREFIX):
        self.session_factory = session_factory
        self.id_prefix = id_prefix

    def register(
        self,
        name: str,
        contact_number: str,
        now: datetime,
        age: int | None = None,
        address: str | None = None,
    ) -> str:
        db = self.session_factory()
        try:
            for attempt in range(1, MAX_REGISTRATION_ATTEMPTS + 1):
                try:
                    patient = self._upsert(db, name, contact_number, now, age, address)
                    db.commit()
                    return patient.id
                except IntegrityError:
                    db.rollback()
                    if attempt == MAX_REGISTRATION_ATTEMPTS:
                        raise
                    logger.info('Patient registration raced for %s, retrying (%d)', contact_number, attempt)
        finally:
            db.close()

    def _upsert(
        self,
        db: Session,
        name: str,
        contact_number: str,
        now: datetime,
        age: int | None,
        address: str | None,
    ) -> Patient:
        patient = db.query(Patient).filter(Patient.contact_number == contact_number).first()

        if patient is None:
            sequence = next_sequence(db, now.date())
            patient = Patient(
                id=format_patient_id(self.id_prefix, now.date(), sequence),
                contact_number=contact_number,
                name=name,
                age=age,
                address=address,
                created_at=now,
                updated_at=now,
            )
            db.add(patient)
            db.flush()
            return patient

        patient.name = name
        if age is not None:
            patient.age = age
        if address:
            patient.address = address
        patient.updated_at = now
        db.flush()
        return patient
