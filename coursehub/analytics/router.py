"""Analytics API endpoints.

Instructor dashboards are visible to admins and the instructor; course
dashboards to admins and the course owner.
"""

from uuid import UUID

from fastapi import APIRouter

from coursehub.auth.dependencies import CurrentIdentity
from coursehub.entitlements.dependencies import EntitlementServiceDep

from .dependencies import AnalyticsServiceDep
from .schemas import CourseAnalyticsResponse, InstructorAnalyticsResponse


router = APIRouter(prefix="/v1/analytics", tags=["analytics"])


@router.get(
    "/instructors/{instructor_id}",
    response_model=InstructorAnalyticsResponse,
    summary="Instructor dashboard",
)
async def get_instructor_analytics(
    instructor_id: UUID,
    identity: CurrentIdentity,
    entitlement_service: EntitlementServiceDep,
    analytics_service: AnalyticsServiceDep,
) -> InstructorAnalyticsResponse:
    """Revenue, course stats, engagement and monthly series for an instructor."""
    entitlement_service.require_instructor_dashboard(identity, instructor_id)
    analytics = await analytics_service.get_instructor_analytics(instructor_id)
    return InstructorAnalyticsResponse.model_validate(analytics)


@router.get(
    "/courses/{course_id}",
    response_model=CourseAnalyticsResponse,
    summary="Course dashboard",
)
async def get_course_analytics(
    course_id: UUID,
    identity: CurrentIdentity,
    entitlement_service: EntitlementServiceDep,
    analytics_service: AnalyticsServiceDep,
) -> CourseAnalyticsResponse:
    """Enrollments, completion and progress distribution for one course."""
    course = await entitlement_service.require_course_dashboard(identity, course_id)
    analytics = await analytics_service.get_course_analytics(course_id, course)
    return CourseAnalyticsResponse.model_validate(analytics)
