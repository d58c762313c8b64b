from datetime import datetime

import pytest

from backend.models.appointment import Appointment
from backend.scheduling.lifecycle import Channel
from backend.scheduling.payments import (
    ClinicBooking,
    PaidOnlineBooking,
    PaymentAuthorization,
    PendingOnlineBooking,
    apply_payment_outcome,
    resolve_payment,
)

NOW = datetime(2025, 6, 10, 8, 0)
FULL_TRIPLE = PaymentAuthorization(payment_id='pay_1', order_id='order_1', signature='sig')


@pytest.mark.parametrize(
    ('channel', 'authorization', 'expected_status', 'expected_payment_status'),
    [
        (Channel.CLINIC, None, 'Scheduled', 'PayAtClinic'),
        (Channel.CLINIC, FULL_TRIPLE, 'Scheduled', 'PayAtClinic'),
        (Channel.ONLINE, FULL_TRIPLE, 'Paid & Scheduled', 'Paid'),
        (Channel.ONLINE, None, 'Scheduled', 'Pending'),
    ],
)
def test_payment_correlation_table(channel, authorization, expected_status, expected_payment_status) -> None:
    outcome = resolve_payment(channel, authorization, NOW)

    assert outcome.status.value == expected_status
    assert outcome.payment_status.value == expected_payment_status


@pytest.mark.parametrize(
    'authorization',
    [
        PaymentAuthorization(order_id='order_1', signature='sig'),
        PaymentAuthorization(payment_id='pay_1', signature='sig'),
        PaymentAuthorization(payment_id='pay_1', order_id='order_1'),
        PaymentAuthorization(payment_id='pay_1', order_id='order_1', signature='   '),
        PaymentAuthorization(),
    ],
)
def test_incomplete_triple_never_marks_paid(authorization: PaymentAuthorization) -> None:
    outcome = resolve_payment(Channel.ONLINE, authorization, NOW)

    assert isinstance(outcome, PendingOnlineBooking)
    assert outcome.status.value == 'Scheduled'


def test_paid_outcome_records_gateway_and_commit_time() -> None:
    outcome = resolve_payment(Channel.ONLINE, FULL_TRIPLE, NOW, gateway_name='razorpay', amount=50000, currency='INR')

    assert outcome == PaidOnlineBooking(
        payment_id='pay_1',
        order_id='order_1',
        signature='sig',
        payment_method='razorpay',
        amount=50000,
        currency='INR',
        paid_at=NOW,
    )


def test_authorization_accepts_camel_case_keys() -> None:
    authorization = PaymentAuthorization.model_validate(
        {'paymentId': 'pay_1', 'orderId': 'order_1', 'signature': 'sig'}
    )

    assert authorization.is_complete is True


def test_apply_clinic_outcome_leaves_online_fields_empty() -> None:
    appointment = apply_payment_outcome(Appointment(), ClinicBooking())

    assert appointment.status == 'Scheduled'
    assert appointment.payment_status == 'PayAtClinic'
    assert appointment.payment_method == 'offline'
    assert appointment.amount is None
    assert appointment.paid_at is None


def test_apply_paid_outcome_copies_triple() -> None:
    outcome = resolve_payment(Channel.ONLINE, FULL_TRIPLE, NOW, amount=50000, currency='INR')

    appointment = apply_payment_outcome(Appointment(), outcome)

    assert appointment.status == 'Paid & Scheduled'
    assert appointment.payment_id == 'pay_1'
    assert appointment.payment_order_id == 'order_1'
    assert appointment.payment_signature == 'sig'
    assert appointment.amount == 50000
    assert appointment.paid_at == NOW
