"""Payment intent value types."""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any


class PaymentIntentStatus(str, Enum):
    """Normalized status of a payment intent."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PaymentEventType(str, Enum):
    """Gateway webhook events the engine reacts to."""

    SUCCEEDED = "payment_intent.succeeded"
    FAILED = "payment_intent.payment_failed"


# Gateway statuses that mean the intent can no longer succeed
_FAILED_GATEWAY_STATUSES = frozenset({"failed", "canceled", "payment_failed"})


def parse_intent_status(raw: str | None) -> PaymentIntentStatus:
    """Map a gateway status string onto the three states the engine knows."""
    if raw == "succeeded":
        return PaymentIntentStatus.SUCCEEDED
    if raw in _FAILED_GATEWAY_STATUSES:
        return PaymentIntentStatus.FAILED
    return PaymentIntentStatus.PENDING


def to_minor_units(amount: Decimal) -> int:
    """Decimal major units (pounds) to integer minor units (pence)."""
    return int((amount * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class PaymentIntent:
    """A gateway payment intent. ``amount`` is in major currency units."""

    intent_id: str
    amount: Decimal
    currency: str
    status: PaymentIntentStatus = PaymentIntentStatus.PENDING
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == PaymentIntentStatus.SUCCEEDED

    def covers(self, price: Decimal) -> bool:
        """Whether this intent succeeded for at least ``price``."""
        return self.succeeded and self.amount >= price

    @classmethod
    def from_gateway(cls, data: dict[str, Any]) -> "PaymentIntent":
        """Build from a gateway JSON payload (amount in minor units)."""
        return cls(
            intent_id=data["id"],
            amount=from_minor_units(int(data.get("amount", 0))),
            currency=str(data.get("currency", "")).lower(),
            status=parse_intent_status(data.get("status")),
            client_secret=data.get("client_secret"),
            metadata={k: str(v) for k, v in (data.get("metadata") or {}).items()},
        )
