import pytest
import requests

from backend.payments.gateway import PaymentOrder, RazorpayGateway, compute_signature
from backend.scheduling.errors import PaymentGatewayError
from backend.scheduling.payments import PaymentAuthorization


class _FakeResponse:
    def __init__(self, body=None, status_code: int = 200):
        self._body = body
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error')

    def json(self):
        if self._body is None:
            raise ValueError('no json')
        return self._body


class _FakeSession:
    def __init__(self, response=None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def _gateway(session) -> RazorpayGateway:
    return RazorpayGateway(
        key_id='rzp_test_key',
        key_secret='secret',
        base_url='https://gateway.example.com/v1/',
        timeout=3,
        session=session,
    )


def test_create_order_posts_amount_with_timeout() -> None:
    session = _FakeSession(_FakeResponse({'id': 'order_9', 'amount': 50000, 'currency': 'INR'}))

    order = _gateway(session).create_order(50000, 'INR')

    assert order == PaymentOrder(order_id='order_9', amount=50000, currency='INR')
    url, kwargs = session.calls[0]
    assert url == 'https://gateway.example.com/v1/orders'
    assert kwargs['json'] == {'amount': 50000, 'currency': 'INR'}
    assert kwargs['auth'] == ('rzp_test_key', 'secret')
    assert kwargs['timeout'] == 3


@pytest.mark.parametrize(
    'session',
    [
        _FakeSession(error=requests.ConnectionError('unreachable')),
        _FakeSession(error=requests.Timeout('slow')),
        _FakeSession(_FakeResponse({'error': 'bad'}, status_code=400)),
        _FakeSession(_FakeResponse(None)),
        _FakeSession(_FakeResponse({'amount': 50000})),
    ],
)
def test_create_order_failures_raise_gateway_error(session) -> None:
    with pytest.raises(PaymentGatewayError):
        _gateway(session).create_order(50000, 'INR')


def test_create_order_rejects_non_positive_amount() -> None:
    session = _FakeSession()

    with pytest.raises(PaymentGatewayError):
        _gateway(session).create_order(0, 'INR')

    assert session.calls == []


def test_verify_signature_accepts_gateway_signature() -> None:
    signature = compute_signature('order_9', 'pay_3', 'secret')
    authorization = PaymentAuthorization(payment_id='pay_3', order_id='order_9', signature=signature)

    assert _gateway(_FakeSession()).verify_signature(authorization) is True


def test_verify_signature_rejects_tampered_or_partial_triples() -> None:
    gateway = _gateway(_FakeSession())
    signature = compute_signature('order_9', 'pay_3', 'secret')

    assert gateway.verify_signature(
        PaymentAuthorization(payment_id='pay_4', order_id='order_9', signature=signature)
    ) is False
    assert gateway.verify_signature(PaymentAuthorization(payment_id='pay_3', order_id='order_9')) is False


def test_verify_signature_fails_closed_without_secret() -> None:
    gateway = RazorpayGateway(key_id='k', key_secret='', session=_FakeSession())
    authorization = PaymentAuthorization(payment_id='pay_3', order_id='order_9', signature='anything')

    assert gateway.verify_signature(authorization) is False
