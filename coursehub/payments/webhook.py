"""Webhook payload verification and parsing."""

import hashlib
import hmac

import orjson

from coursehub.core.errors import UnauthenticatedError, ValidationError

from .models import PaymentEventType, PaymentIntent


SIGNATURE_HEADER = "X-Payment-Signature"


def sign_payload(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes, signature: str | None, secret: str | None) -> None:
    """Check the HMAC-SHA256 signature of a webhook body.

    No secret configured means signatures are not checked (development).

    Raises:
        UnauthenticatedError: Signature missing or wrong
    """
    if not secret:
        return
    if not signature:
        raise UnauthenticatedError("Missing webhook signature")
    if not hmac.compare_digest(sign_payload(payload, secret), signature):
        raise UnauthenticatedError("Invalid webhook signature")


def parse_event(payload: bytes) -> tuple[str, PaymentIntent]:
    """Return ``(event_type, intent)`` from a webhook body.

    Raises:
        ValidationError: Body is not a payment intent event
    """
    try:
        data = orjson.loads(payload)
        event_type = data["type"]
        intent = PaymentIntent.from_gateway(data["data"]["object"])
    except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise ValidationError("Malformed payment webhook payload") from e
    return event_type, intent


def is_handled_event(event_type: str) -> bool:
    return event_type in {e.value for e in PaymentEventType}
