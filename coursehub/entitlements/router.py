"""Lesson access API endpoint."""

from uuid import UUID

from fastapi import APIRouter

from coursehub.auth.dependencies import OptionalIdentity

from .dependencies import EntitlementServiceDep
from .schemas import AccessDecisionResponse


router = APIRouter(prefix="/v1/courses", tags=["entitlements"])


@router.get(
    "/{course_id}/lessons/{lesson_id}/access",
    response_model=AccessDecisionResponse,
    summary="Check lesson access",
)
async def check_lesson_access(
    course_id: UUID,
    lesson_id: UUID,
    identity: OptionalIdentity,
    entitlement_service: EntitlementServiceDep,
) -> AccessDecisionResponse:
    """Decide whether the caller may open a lesson.

    Anonymous callers are allowed and only ever see preview lessons.
    A denial is a normal response (``allowed=false``), not an error.
    """
    decision = await entitlement_service.can_access(identity, course_id, lesson_id)
    return AccessDecisionResponse.from_decision(course_id, lesson_id, decision)
