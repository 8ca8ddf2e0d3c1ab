"""
Razorpay gateway client and payment-signature verification.

The gateway is reached over its REST API; the signature check is the only
trust boundary between a client's "payment succeeded" claim and the server.
"""

import hashlib
import hmac
import logging
import math
import secrets

import requests
from fastapi import Depends

from config import Settings, get_settings
from errors import GatewayError, SignatureMismatch

log = logging.getLogger(__name__)

RAZORPAY_API = "https://api.razorpay.com/v1"
CURRENCY = "INR"


class RazorpayGateway:
    def __init__(self, key_id: str, key_secret: str, base_url: str = RAZORPAY_API):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url
        self.session = requests.Session()
        self.session.auth = (key_id, key_secret)

    def create_order(self, amount: int, currency: str, receipt: str) -> dict:
        try:
            response = self.session.post(
                f"{self.base_url}/orders",
                json={"amount": amount, "currency": currency, "receipt": receipt},
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            log.error("Razorpay order creation failed: %s", e)
            raise GatewayError() from e


def get_gateway(settings: Settings = Depends(get_settings)) -> RazorpayGateway:
    return RazorpayGateway(settings.razorpay_key_id, settings.razorpay_key_secret)


def to_minor_units(amount: float) -> int:
    return int(math.floor(amount * 100 + 0.5))


def create_gateway_order(gateway, total_price: float) -> dict:
    options = {
        "amount": to_minor_units(total_price),
        "currency": CURRENCY,
        "receipt": secrets.token_hex(10),
    }
    order = gateway.create_order(**options)
    return {"id": order["id"], "currency": order["currency"], "amount": order["amount"]}


def expected_signature(order_id: str, payment_id: str, secret: str) -> str:
    body = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode(), body.encode(), hashlib.sha256).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: str):
    expected = expected_signature(order_id, payment_id, secret)
    if not hmac.compare_digest(expected.encode(), (signature or "").encode()):
        log.warning("Signature mismatch for razorpay order %s", order_id)
        raise SignatureMismatch()
