"""Checkout and payment webhook endpoints."""

from typing import Annotated

from fastapi import APIRouter, Header, Request

from coursehub.auth.dependencies import CurrentIdentity
from coursehub.config.settings import get_settings
from coursehub.core.logging import get_logger
from coursehub.enrollments.dependencies import EnrollmentServiceDep
from coursehub.enrollments.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    EnrollmentResponse,
    PaymentIntentResponse,
    WebhookAck,
)

from .webhook import SIGNATURE_HEADER, is_handled_event, parse_event, verify_signature


logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["payments"])


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    summary="Start checkout",
)
async def checkout(
    data: CheckoutRequest,
    identity: CurrentIdentity,
    enrollment_service: EnrollmentServiceDep,
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key")] = None,
) -> CheckoutResponse:
    """Create a payment intent for a course and record a pending enrollment.

    Repeated calls return the still-open intent. Already-enrolled callers
    and free courses get no payment block.
    """
    result = await enrollment_service.begin_checkout(
        identity.user_id, data.course_id, idempotency_key=idempotency_key
    )

    payment = None
    if result.intent is not None:
        payment = PaymentIntentResponse(
            intent_id=result.intent.intent_id,
            client_secret=result.intent.client_secret,
            amount=result.intent.amount,
            currency=result.intent.currency,
        )

    return CheckoutResponse(
        enrollment=EnrollmentResponse.from_entity(result.enrollment),
        payment=payment,
    )


@router.post(
    "/payments/webhook",
    response_model=WebhookAck,
    summary="Payment gateway webhook",
)
async def payment_webhook(
    request: Request,
    enrollment_service: EnrollmentServiceDep,
) -> WebhookAck:
    """Receive payment intent events from the gateway."""
    payload = await request.body()
    verify_signature(
        payload,
        request.headers.get(SIGNATURE_HEADER),
        get_settings().payment_webhook_secret,
    )

    event_type, intent = parse_event(payload)
    logger.info("payment_webhook_received", event_type=event_type, intent_id=intent.intent_id)

    if is_handled_event(event_type):
        await enrollment_service.handle_payment_event(event_type, intent)

    return WebhookAck()
