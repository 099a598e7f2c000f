"""Tests for webhook signature checks and payload parsing."""

import orjson
import pytest

from coursehub.core.errors import UnauthenticatedError, ValidationError
from coursehub.payments.models import PaymentEventType, PaymentIntentStatus
from coursehub.payments.webhook import (
    is_handled_event,
    parse_event,
    sign_payload,
    verify_signature,
)


SECRET = "whsec_test"


def event_body(event_type: str = "payment_intent.succeeded") -> bytes:
    return orjson.dumps(
        {
            "type": event_type,
            "data": {
                "object": {
                    "id": "pi_hook",
                    "amount": 2500,
                    "currency": "gbp",
                    "status": "succeeded",
                    "metadata": {"course_id": "c1", "user_id": "u1"},
                }
            },
        }
    )


class TestSignature:
    """Tests for verify_signature."""

    def test_valid_signature(self) -> None:
        """Matching HMAC passes."""
        body = event_body()

        verify_signature(body, sign_payload(body, SECRET), SECRET)

    def test_tampered_body(self) -> None:
        """Signature of another body is rejected."""
        signature = sign_payload(event_body(), SECRET)

        with pytest.raises(UnauthenticatedError):
            verify_signature(event_body("payment_intent.payment_failed"), signature, SECRET)

    def test_missing_signature(self) -> None:
        """A configured secret requires a signature."""
        with pytest.raises(UnauthenticatedError):
            verify_signature(event_body(), None, SECRET)

    def test_no_secret_skips_check(self) -> None:
        """Without a secret nothing is verified."""
        verify_signature(event_body(), None, None)


class TestParseEvent:
    """Tests for parse_event."""

    def test_parses_intent(self) -> None:
        """Event type and intent come out of the envelope."""
        event_type, intent = parse_event(event_body())

        assert event_type == PaymentEventType.SUCCEEDED.value
        assert intent.intent_id == "pi_hook"
        assert str(intent.amount) == "25.00"
        assert intent.status == PaymentIntentStatus.SUCCEEDED

    @pytest.mark.parametrize(
        "payload",
        [b"not json", b"{}", b'{"type": "x", "data": {}}', b"[]"],
    )
    def test_malformed_payload(self, payload: bytes) -> None:
        """Anything that is not an intent event is a ValidationError."""
        with pytest.raises(ValidationError):
            parse_event(payload)

    def test_handled_events(self) -> None:
        """Only succeeded and failed intent events are handled."""
        assert is_handled_event("payment_intent.succeeded")
        assert is_handled_event("payment_intent.payment_failed")
        assert not is_handled_event("charge.refunded")
