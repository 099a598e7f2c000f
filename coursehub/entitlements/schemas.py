"""Pydantic schemas for entitlement endpoints."""

from uuid import UUID

from pydantic import BaseModel, Field

from .models import AccessDecision, AccessReason


class AccessDecisionResponse(BaseModel):
    """Response for a lesson access check."""

    course_id: UUID
    lesson_id: UUID
    allowed: bool = Field(..., description="Whether the caller may open the lesson")
    reason: AccessReason = Field(..., description="Rule that decided the outcome")

    @classmethod
    def from_decision(
        cls, course_id: UUID, lesson_id: UUID, decision: AccessDecision
    ) -> "AccessDecisionResponse":
        return cls(
            course_id=course_id,
            lesson_id=lesson_id,
            allowed=decision.allowed,
            reason=decision.reason,
        )
