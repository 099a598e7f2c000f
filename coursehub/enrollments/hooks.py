"""Course-completed hook.

Fired exactly once per enrollment, right after the update that first takes
progress to 100 is persisted. Notification delivery is someone else's job;
the default hook only logs.
"""

from typing import Protocol

from coursehub.core.logging import get_logger
from coursehub.courses.models import Course

from .models import Enrollment


logger = get_logger(__name__)


class CompletionHook(Protocol):
    async def course_completed(self, enrollment: Enrollment, course: Course) -> None: ...


class LoggingCompletionHook:
    """Records course completions in the application log."""

    async def course_completed(self, enrollment: Enrollment, course: Course) -> None:
        logger.info(
            "course_completed",
            enrollment_id=str(enrollment.id),
            user_id=str(enrollment.user_id),
            course_id=str(course.id),
            course_title=course.title,
            completed_at=enrollment.completed_at.isoformat()
            if enrollment.completed_at
            else None,
        )
