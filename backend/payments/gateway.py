"""Client for the hosted payment gateway.

Creates orders before checkout and verifies the signature the gateway hands
back once the patient completes payment. The booking core only ever sees an
authorization that has already passed ``verify_signature``.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass

import requests

from backend.core import config
from backend.scheduling.errors import PaymentGatewayError
from backend.scheduling.payments import PaymentAuthorization

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentOrder:
    order_id: str
    amount: int
    currency: str


def compute_signature(order_id: str, payment_id: str, key_secret: str) -> str:
    message = f'{order_id}|{payment_id}'.encode()
    return hmac.new(key_secret.encode(), message, hashlib.sha256).hexdigest()


class RazorpayGateway:
    def __init__(
        self,
        key_id: str = config.PAYMENT_GATEWAY_KEY_ID,
        key_secret: str = config.PAYMENT_GATEWAY_KEY_SECRET,
        base_url: str = config.PAYMENT_GATEWAY_BASE_URL,
        timeout: int = config.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def create_order(self, amount_minor_units: int, currency: str = config.CURRENCY) -> PaymentOrder:
        if amount_minor_units <= 0:
            raise PaymentGatewayError('Order amount must be positive.')

        try:
            response = self.session.post(
                f'{self.base_url}/orders',
                json={'amount': amount_minor_units, 'currency': currency},
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            logger.exception('Payment gateway order creation failed')
            raise PaymentGatewayError('Could not create a payment order.') from exc
        except ValueError as exc:
            raise PaymentGatewayError('Payment gateway returned an unreadable response.') from exc

        try:
            return PaymentOrder(
                order_id=body['id'],
                amount=int(body['amount']),
                currency=body['currency'],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise PaymentGatewayError('Payment gateway returned an incomplete order.') from exc

    def verify_signature(self, authorization: PaymentAuthorization) -> bool:
        if not authorization.is_complete or not self.key_secret:
            return False

        expected = compute_signature(authorization.order_id, authorization.payment_id, self.key_secret)
        return hmac.compare_digest(expected, authorization.signature)


def get_payment_gateway() -> RazorpayGateway:
    return RazorpayGateway()
