"""Pydantic schemas for enrollment endpoints."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Enrollment, EnrollmentState, PaymentStatus


# ==============================================================================
# Request Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll in a course."""

    course_id: UUID = Field(..., description="Course UUID to enroll in")
    payment_intent_id: str | None = Field(
        default=None,
        min_length=1,
        max_length=255,
        description="Gateway payment intent (required for paid courses)",
    )


class CheckoutRequest(BaseModel):
    """Request to start paying for a course."""

    course_id: UUID


# ==============================================================================
# Response Schemas
# ==============================================================================


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    course_id: UUID
    payment_status: PaymentStatus
    state: EnrollmentState
    progress: int = Field(..., ge=0, le=100)
    completed_lessons: list[UUID]
    enrolled_at: datetime
    completed_at: datetime | None = None
    last_accessed_at: datetime | None = None

    @classmethod
    def from_entity(cls, enrollment: Enrollment) -> "EnrollmentResponse":
        return cls(
            id=enrollment.id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            payment_status=enrollment.payment_status,
            state=enrollment.state,
            progress=enrollment.progress,
            completed_lessons=sorted(enrollment.completed_lessons, key=str),
            enrolled_at=enrollment.enrolled_at,
            completed_at=enrollment.completed_at,
            last_accessed_at=enrollment.last_accessed_at,
        )


class EnrollmentListResponse(BaseModel):
    """List of user enrollments."""

    items: list[EnrollmentResponse]
    total: int


class PaymentIntentResponse(BaseModel):
    """What the client needs to finish paying."""

    intent_id: str
    client_secret: str | None = None
    amount: Decimal
    currency: str


class CheckoutResponse(BaseModel):
    """Checkout outcome. ``payment`` is null when nothing is owed."""

    enrollment: EnrollmentResponse
    payment: PaymentIntentResponse | None = None


class WebhookAck(BaseModel):
    received: bool = True
