"""Decide-and-commit for a single booking request.

Every failure is folded into a ``BookingResult`` here: no SQLAlchemy error
leaves ``BookingService.book``. Double booking is prevented by the partial
unique index on active (doctor, date, slot) rows; losing that race is
reported exactly like finding the slot already taken.
"""

import logging
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from backend.core import config
from backend.models.appointment import Appointment
from backend.scheduling.availability import booked_slots, suggest_slots
from backend.scheduling.errors import StorageUnavailable
from backend.scheduling.lifecycle import Channel
from backend.scheduling.patients import PatientRegistry
from backend.scheduling.payments import PaymentAuthorization, apply_payment_outcome, resolve_payment
from backend.scheduling.slots import SlotCatalog

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MIN_NAME_LENGTH = 2
MIN_CONTACT_NUMBER_LENGTH = 10
MAX_ADDRESS_LENGTH = 200
MAX_BLOOD_PRESSURE_LENGTH = 20

INVALID_DATA_MESSAGE = 'Invalid data provided. Failed to create appointment.'
PAST_APPOINTMENT_MESSAGE = 'Appointments must be scheduled in the future.'
SLOT_CONFLICT_MESSAGE = 'The selected time slot is already booked. Please choose another time.'
STORAGE_FAILURE_MESSAGE = 'Database Error: Failed to create appointment.'
STORAGE_FAILURE_DETAIL = 'An unexpected error occurred while saving the appointment.'
BOOKED_MESSAGE = 'Appointment created successfully!'


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class BookingRequest(BaseModel):
    name: str
    age: int | None = None
    contact_number: str | None = None
    address: str | None = None
    blood_pressure: str | None = Field(default=None, alias='BP')
    doctor_id: str
    appointment_date: date
    slot: str
    channel: Channel = Channel.CLINIC
    is_online: bool | None = None
    payment: PaymentAuthorization | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @model_validator(mode='after')
    def channel_from_is_online(self) -> 'BookingRequest':
        if 'channel' not in self.model_fields_set and self.is_online is not None:
            self.channel = Channel.ONLINE if self.is_online else Channel.CLINIC
        return self

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) < MIN_NAME_LENGTH:
            raise ValueError(f'Name must be at least {MIN_NAME_LENGTH} characters.')
        if len(normalized) > MAX_NAME_LENGTH:
            raise ValueError(f'Name must be {MAX_NAME_LENGTH} characters or less.')
        return normalized

    @field_validator('age', 'contact_number', 'address', 'blood_pressure', mode='before')
    @classmethod
    def empty_optional_fields(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator('age')
    @classmethod
    def validate_age(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise ValueError('Age must be a positive number.')
        return value

    @field_validator('contact_number')
    @classmethod
    def validate_contact_number(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if len(normalized) < MIN_CONTACT_NUMBER_LENGTH:
            raise ValueError(f'Contact number must be at least {MIN_CONTACT_NUMBER_LENGTH} digits.')
        return normalized

    @field_validator('address')
    @classmethod
    def validate_address(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if len(normalized) > MAX_ADDRESS_LENGTH:
            raise ValueError(f'Address must be {MAX_ADDRESS_LENGTH} characters or less.')
        return normalized

    @field_validator('blood_pressure')
    @classmethod
    def validate_blood_pressure(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if len(normalized) > MAX_BLOOD_PRESSURE_LENGTH:
            raise ValueError(f'BP value must be {MAX_BLOOD_PRESSURE_LENGTH} characters or less.')
        return normalized

    @field_validator('doctor_id')
    @classmethod
    def validate_doctor_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Please select a doctor.')
        return normalized

    @field_validator('slot')
    @classmethod
    def validate_slot(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Please select a preferred time.')
        return normalized


class PaymentDetails(BaseModel):
    payment_status: str | None = None
    payment_method: str | None = None
    payment_id: str | None = None
    order_id: str | None = None
    amount: int | None = None
    currency: str | None = None
    paid_at: datetime | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class AppointmentResponse(BaseModel):
    id: str
    patient_name: str
    age: int | None = None
    contact_number: str | None = None
    address: str | None = None
    blood_pressure: str | None = None
    doctor_id: str
    appointment_date: date
    slot: str
    scheduled_at: datetime
    channel: Channel
    status: str
    payment: PaymentDetails | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> 'AppointmentResponse':
        payment = None
        if appointment.payment_status is not None:
            payment = PaymentDetails(
                payment_status=appointment.payment_status,
                payment_method=appointment.payment_method,
                payment_id=appointment.payment_id,
                order_id=appointment.payment_order_id,
                amount=appointment.amount,
                currency=appointment.currency,
                paid_at=appointment.paid_at,
            )

        return cls(
            id=appointment.id,
            patient_name=appointment.patient_name,
            age=appointment.age,
            contact_number=appointment.contact_number,
            address=appointment.address,
            blood_pressure=appointment.blood_pressure,
            doctor_id=appointment.doctor_id,
            appointment_date=appointment.appointment_date,
            slot=appointment.slot,
            scheduled_at=appointment.scheduled_at,
            channel=appointment.channel,
            status=appointment.status,
            payment=payment,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
        )


class BookingOutcome(str, Enum):
    BOOKED = 'booked'
    INVALID = 'invalid'
    PAST_APPOINTMENT = 'past_appointment'
    SLOT_CONFLICT = 'slot_conflict'
    STORAGE_FAILURE = 'storage_failure'
    PAYMENT_FAILURE = 'payment_failure'


class BookingResult(BaseModel):
    success: bool
    appointment: AppointmentResponse | None = None
    message: str | None = None
    errors: dict[str, list[str]] | None = None
    slot_available: bool | None = None
    suggestions: list[str] | None = None
    outcome: BookingOutcome = Field(exclude=True)

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def invalid(cls, errors: dict[str, list[str]], message: str = INVALID_DATA_MESSAGE) -> 'BookingResult':
        return cls(success=False, outcome=BookingOutcome.INVALID, errors=errors, message=message)

    @classmethod
    def payment_failure(cls, message: str) -> 'BookingResult':
        return cls(
            success=False,
            outcome=BookingOutcome.PAYMENT_FAILURE,
            errors={'payment': [message]},
            message=message,
        )


def _field_errors(exc: ValidationError) -> dict[str, list[str]]:
    aliases = {}
    for name, info in BookingRequest.model_fields.items():
        alias = info.alias or name
        aliases[name] = alias
        aliases[alias] = alias
    errors: dict[str, list[str]] = {}

    for error in exc.errors():
        location = error.get('loc') or ('_form',)
        field = aliases.get(str(location[0]), str(location[0]))
        context_error = (error.get('ctx') or {}).get('error')
        message = str(context_error) if error['type'] == 'value_error' and context_error else error['msg']
        errors.setdefault(field, []).append(message)

    return errors


def validate_booking_payload(
    payload: dict | BookingRequest,
    catalog: SlotCatalog,
) -> tuple[BookingRequest | None, dict[str, list[str]] | None]:
    """Validate a raw payload without touching storage.

    Returns the parsed request, or field-keyed error messages.
    """
    if isinstance(payload, BookingRequest):
        request = payload
    else:
        try:
            request = BookingRequest.model_validate(payload)
        except ValidationError as exc:
            return None, _field_errors(exc)

    if not catalog.contains(request.slot):
        return None, {'slot': ['Please select one of the offered times.']}

    return request.model_copy(update={'slot': catalog.normalize(request.slot)}), None


class BookingService:
    def __init__(
        self,
        session_factory: sessionmaker,
        catalog: SlotCatalog | None = None,
        clock: Callable[[], datetime] = datetime.now,
        registry: PatientRegistry | None = None,
        gateway_name: str = config.PAYMENT_GATEWAY_NAME,
        max_suggestions: int = config.MAX_SUGGESTIONS,
    ):
        self.session_factory = session_factory
        self.catalog = catalog or SlotCatalog()
        self.clock = clock
        self.registry = registry
        self.gateway_name = gateway_name
        self.max_suggestions = max_suggestions

    def book(self, payload: dict | BookingRequest) -> BookingResult:
        request, errors = validate_booking_payload(payload, self.catalog)
        if errors:
            return BookingResult.invalid(errors)

        now = self.clock()
        past = self.check_timing(request, now)
        if past is not None:
            return past
        scheduled_at = self.catalog.combine(request.appointment_date, request.slot)

        db = self.session_factory()
        try:
            result = self._book_in_session(db, request, scheduled_at, now)
        finally:
            db.close()

        if result.success and request.contact_number:
            self._register_patient(request, now)

        return result

    def check_timing(self, request: BookingRequest, now: datetime | None = None) -> BookingResult | None:
        """Return a PastAppointment result if the slot starts at or before ``now``."""
        now = now or self.clock()
        if self.catalog.combine(request.appointment_date, request.slot) > now:
            return None

        return BookingResult(
            success=False,
            outcome=BookingOutcome.PAST_APPOINTMENT,
            errors={'slot': [PAST_APPOINTMENT_MESSAGE]},
            message=PAST_APPOINTMENT_MESSAGE,
        )

    def _book_in_session(
        self,
        db: Session,
        request: BookingRequest,
        scheduled_at: datetime,
        now: datetime,
    ) -> BookingResult:
        try:
            booked = booked_slots(db, request.doctor_id, request.appointment_date)
        except StorageUnavailable:
            logger.exception(
                'Availability check failed for doctor %s on %s',
                request.doctor_id,
                request.appointment_date,
            )
            return self._storage_failure()

        if request.slot in booked:
            return self._conflict(request, booked, now)

        appointment = Appointment(
            id=uuid.uuid4().hex,
            patient_name=request.name,
            age=request.age,
            contact_number=request.contact_number,
            address=request.address,
            blood_pressure=request.blood_pressure,
            doctor_id=request.doctor_id,
            appointment_date=request.appointment_date,
            slot=request.slot,
            scheduled_at=scheduled_at,
            channel=request.channel.value,
            created_at=now,
            updated_at=now,
        )
        outcome = resolve_payment(request.channel, request.payment, now, gateway_name=self.gateway_name)
        apply_payment_outcome(appointment, outcome)

        try:
            db.add(appointment)
            db.commit()
            db.refresh(appointment)
        except IntegrityError:
            db.rollback()
            return self._lost_race(db, request, now)
        except SQLAlchemyError:
            db.rollback()
            logger.exception(
                'Failed to save appointment for doctor %s at %s %s',
                request.doctor_id,
                request.appointment_date,
                request.slot,
            )
            return self._storage_failure()

        logger.info(
            'Booked appointment %s for doctor %s at %s %s (%s)',
            appointment.id,
            appointment.doctor_id,
            appointment.appointment_date,
            appointment.slot,
            appointment.status,
        )
        return BookingResult(
            success=True,
            outcome=BookingOutcome.BOOKED,
            appointment=AppointmentResponse.from_appointment(appointment),
            message=BOOKED_MESSAGE,
        )

    def _lost_race(self, db: Session, request: BookingRequest, now: datetime) -> BookingResult:
        try:
            booked = booked_slots(db, request.doctor_id, request.appointment_date)
        except StorageUnavailable:
            logger.exception('Could not re-read booked slots after a rejected insert')
            return self._storage_failure()

        if request.slot not in booked:
            # The insert broke some other constraint, e.g. an unknown doctor.
            logger.error(
                'Appointment insert rejected for doctor %s at %s %s but the slot is free',
                request.doctor_id,
                request.appointment_date,
                request.slot,
            )
            return self._storage_failure()

        logger.info(
            'Slot %s on %s for doctor %s was taken by a concurrent booking',
            request.slot,
            request.appointment_date,
            request.doctor_id,
        )
        return self._conflict(request, booked, now)

    def _conflict(self, request: BookingRequest, booked: set[str], now: datetime) -> BookingResult:
        suggestions = suggest_slots(
            self.catalog,
            booked,
            request.slot,
            request.appointment_date,
            now,
            limit=self.max_suggestions,
        )
        return BookingResult(
            success=False,
            outcome=BookingOutcome.SLOT_CONFLICT,
            slot_available=False,
            suggestions=suggestions,
            message=SLOT_CONFLICT_MESSAGE,
        )

    @staticmethod
    def _storage_failure() -> BookingResult:
        return BookingResult(
            success=False,
            outcome=BookingOutcome.STORAGE_FAILURE,
            errors={'_form': [STORAGE_FAILURE_DETAIL]},
            message=STORAGE_FAILURE_MESSAGE,
        )

    def _register_patient(self, request: BookingRequest, now: datetime) -> None:
        if self.registry is None:
            return

        try:
            patient_id = self.registry.register(
                name=request.name,
                contact_number=request.contact_number,
                now=now,
                age=request.age,
                address=request.address,
            )
        except Exception:
            logger.exception('Patient registry update failed for %s; booking kept', request.contact_number)
            return

        logger.info('Patient %s linked to booking', patient_id)
