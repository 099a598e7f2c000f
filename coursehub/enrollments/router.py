"""Enrollment API endpoints.

Provides routes for:
- Enrolling (free or with a payment intent)
- Listing the caller's enrollments
- Canonical enrollment lookup per course
- Lesson completion
"""

from uuid import UUID

from fastapi import APIRouter, status

from coursehub.auth.dependencies import CurrentIdentity

from .dependencies import EnrollmentServiceDep
from .schemas import EnrollmentListResponse, EnrollmentResponse, EnrollRequest


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])
course_enrollment_router = APIRouter(prefix="/v1/courses", tags=["enrollments"])


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll(
    data: EnrollRequest,
    identity: CurrentIdentity,
    enrollment_service: EnrollmentServiceDep,
) -> EnrollmentResponse:
    """Enroll the caller in a course.

    Free courses need no payment. Paid courses need a succeeded payment
    intent covering the price. Retrying with the same input returns the
    same enrollment.
    """
    enrollment = await enrollment_service.enroll(
        user_id=identity.user_id,
        course_id=data.course_id,
        payment_intent_id=data.payment_intent_id,
    )
    return EnrollmentResponse.from_entity(enrollment)


@router.get(
    "/me",
    response_model=EnrollmentListResponse,
    summary="List my enrollments",
)
async def list_my_enrollments(
    identity: CurrentIdentity,
    enrollment_service: EnrollmentServiceDep,
) -> EnrollmentListResponse:
    """Get all of the caller's enrollments, newest first."""
    enrollments = await enrollment_service.list_user_enrollments(identity.user_id)
    return EnrollmentListResponse(
        items=[EnrollmentResponse.from_entity(e) for e in enrollments],
        total=len(enrollments),
    )


@router.post(
    "/{enrollment_id}/lessons/{lesson_id}/complete",
    response_model=EnrollmentResponse,
    summary="Mark lesson complete",
)
async def complete_lesson(
    enrollment_id: UUID,
    lesson_id: UUID,
    identity: CurrentIdentity,
    enrollment_service: EnrollmentServiceDep,
) -> EnrollmentResponse:
    """Mark a lesson complete. Calling it again changes nothing."""
    enrollment = await enrollment_service.complete_lesson(
        identity, enrollment_id, lesson_id
    )
    return EnrollmentResponse.from_entity(enrollment)


@course_enrollment_router.get(
    "/{course_id}/enrollment",
    response_model=EnrollmentResponse,
    summary="Get my enrollment for a course",
)
async def get_course_enrollment(
    course_id: UUID,
    identity: CurrentIdentity,
    enrollment_service: EnrollmentServiceDep,
) -> EnrollmentResponse:
    """Get the caller's enrollment in a course (404 when not enrolled)."""
    enrollment = await enrollment_service.get_enrollment(identity.user_id, course_id)
    return EnrollmentResponse.from_entity(enrollment)
