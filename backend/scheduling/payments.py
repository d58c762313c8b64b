"""Decide an appointment's initial status from its channel and payment handle.

The gateway is never contacted here. A caller-supplied authorization must
already have had its signature verified by the payment collaborator.
"""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel

from backend.core import config
from backend.scheduling.lifecycle import AppointmentStatus, Channel, PaymentStatus

OFFLINE_PAYMENT_METHOD = 'offline'


class PaymentAuthorization(BaseModel):
    payment_id: str | None = None
    order_id: str | None = None
    signature: str | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @field_validator('payment_id', 'order_id', 'signature')
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None

    @property
    def is_complete(self) -> bool:
        return all((self.payment_id, self.order_id, self.signature))


@dataclass(frozen=True)
class ClinicBooking:
    status = AppointmentStatus.SCHEDULED
    payment_status = PaymentStatus.PAY_AT_CLINIC
    payment_method = OFFLINE_PAYMENT_METHOD


@dataclass(frozen=True)
class PendingOnlineBooking:
    amount: int
    currency: str

    status = AppointmentStatus.SCHEDULED
    payment_status = PaymentStatus.PENDING
    payment_method = None


@dataclass(frozen=True)
class PaidOnlineBooking:
    payment_id: str
    order_id: str
    signature: str
    payment_method: str
    amount: int
    currency: str
    paid_at: datetime

    status = AppointmentStatus.PAID_AND_SCHEDULED
    payment_status = PaymentStatus.PAID


PaymentOutcome = ClinicBooking | PendingOnlineBooking | PaidOnlineBooking


def resolve_payment(
    channel: Channel,
    authorization: PaymentAuthorization | None,
    now: datetime,
    gateway_name: str = config.PAYMENT_GATEWAY_NAME,
    amount: int = config.CONSULTATION_FEE_MINOR_UNITS,
    currency: str = config.CURRENCY,
) -> PaymentOutcome:
    if Channel(channel) is Channel.CLINIC:
        return ClinicBooking()

    if authorization is None or not authorization.is_complete:
        return PendingOnlineBooking(amount=amount, currency=currency)

    return PaidOnlineBooking(
        payment_id=authorization.payment_id,
        order_id=authorization.order_id,
        signature=authorization.signature,
        payment_method=gateway_name,
        amount=amount,
        currency=currency,
        paid_at=now,
    )


def apply_payment_outcome(appointment, outcome: PaymentOutcome):
    """Copy a payment outcome onto an appointment row."""
    appointment.status = outcome.status.value
    appointment.payment_status = outcome.payment_status.value
    appointment.payment_method = outcome.payment_method

    if isinstance(outcome, (PendingOnlineBooking, PaidOnlineBooking)):
        appointment.amount = outcome.amount
        appointment.currency = outcome.currency

    if isinstance(outcome, PaidOnlineBooking):
        appointment.payment_id = outcome.payment_id
        appointment.payment_order_id = outcome.order_id
        appointment.payment_signature = outcome.signature
        appointment.paid_at = outcome.paid_at

    return appointment
