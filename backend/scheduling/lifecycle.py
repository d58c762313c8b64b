"""Appointment status state machine.

Appointments are created as ``Scheduled`` or ``Paid & Scheduled`` and only
leave those states through administrative actions (cancel, refund, fail).
Terminal states are never left again, and rows are never deleted.
"""

from datetime import datetime
from enum import Enum

from backend.scheduling.errors import InvalidTransition


class AppointmentStatus(str, Enum):
    SCHEDULED = 'Scheduled'
    PAID_AND_SCHEDULED = 'Paid & Scheduled'
    CANCELLED = 'Cancelled'
    FAILED = 'Failed'
    REFUNDED = 'Refunded'


class PaymentStatus(str, Enum):
    PAID = 'Paid'
    PENDING = 'Pending'
    FAILED = 'Failed'
    PAY_AT_CLINIC = 'PayAtClinic'
    REFUNDED = 'Refunded'


class Channel(str, Enum):
    ONLINE = 'online'
    CLINIC = 'clinic'


ACTIVE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.PAID_AND_SCHEDULED})
TERMINAL_STATUSES = frozenset({
    AppointmentStatus.CANCELLED,
    AppointmentStatus.FAILED,
    AppointmentStatus.REFUNDED,
})

ALLOWED_TRANSITIONS = {
    AppointmentStatus.SCHEDULED: frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.FAILED}),
    AppointmentStatus.PAID_AND_SCHEDULED: frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.REFUNDED}),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.FAILED: frozenset(),
    AppointmentStatus.REFUNDED: frozenset(),
}


def active_status_values() -> list[str]:
    return sorted(status.value for status in ACTIVE_STATUSES)


def active_status_clause(column: str = 'status') -> str:
    """SQL predicate matching active rows, shared by the unique index and migrations."""
    quoted = ', '.join(f"'{value}'" for value in active_status_values())
    return f'{column} IN ({quoted})'


def is_active(status: str | AppointmentStatus) -> bool:
    return AppointmentStatus(status) in ACTIVE_STATUSES


def can_transition(current: str | AppointmentStatus, requested: str | AppointmentStatus) -> bool:
    return AppointmentStatus(requested) in ALLOWED_TRANSITIONS[AppointmentStatus(current)]


def transition(appointment, requested: str | AppointmentStatus, now: datetime):
    """Move ``appointment`` to ``requested``, stamping ``updated_at``.

    Raises InvalidTransition when the move is not allowed from the current
    status. A refund also marks the payment as refunded.
    """
    current = AppointmentStatus(appointment.status)
    requested = AppointmentStatus(requested)

    if not can_transition(current, requested):
        raise InvalidTransition(current.value, requested.value)

    appointment.status = requested.value
    if requested is AppointmentStatus.REFUNDED:
        appointment.payment_status = PaymentStatus.REFUNDED.value
    appointment.updated_at = now

    return appointment
