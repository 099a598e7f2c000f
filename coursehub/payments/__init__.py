"""Payment gateway port, adapters and webhook handling."""

from .gateway import HTTPPaymentGateway, InMemoryPaymentGateway, PaymentGateway
from .models import PaymentEventType, PaymentIntent, PaymentIntentStatus


__all__ = [
    "HTTPPaymentGateway",
    "InMemoryPaymentGateway",
    "PaymentEventType",
    "PaymentGateway",
    "PaymentIntent",
    "PaymentIntentStatus",
]
