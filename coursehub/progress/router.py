"""Course progress API endpoint."""

from uuid import UUID

from fastapi import APIRouter

from coursehub.auth.dependencies import CurrentIdentity

from .dependencies import ProgressServiceDep
from .schemas import CourseProgressResponse


router = APIRouter(prefix="/v1/courses", tags=["progress"])


@router.get(
    "/{course_id}/progress",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    identity: CurrentIdentity,
    progress_service: ProgressServiceDep,
) -> CourseProgressResponse:
    """Get the caller's progress, section breakdown, next lesson and estimate."""
    view = await progress_service.get_course_progress(identity.user_id, course_id)
    return CourseProgressResponse.from_view(view)
