"""Entitlement service layer.

Loads the data a decision needs and hands it to the evaluator. Routers never
check roles or ownership themselves; they go through this service.
"""

from uuid import UUID

from coursehub.auth.identity import Identity
from coursehub.core.errors import (
    AuthorizationError,
    CourseNotFoundError,
    LessonNotFoundError,
)
from coursehub.core.logging import get_logger
from coursehub.courses.models import Course
from coursehub.courses.store import CourseStore
from coursehub.enrollments.repository import EnrollmentRepository

from .evaluator import decide, decide_dashboard, decide_instructor_dashboard
from .models import AccessDecision


logger = get_logger(__name__)


class EntitlementService:
    """Access checks for lessons and dashboards."""

    def __init__(self, courses: CourseStore, enrollments: EnrollmentRepository):
        self.courses = courses
        self.enrollments = enrollments

    async def _get_course(self, course_id: UUID) -> Course:
        course = await self.courses.get_course(course_id)
        if course is None:
            raise CourseNotFoundError(f"Course {course_id} not found")
        return course

    async def can_access(
        self, identity: Identity, course_id: UUID, lesson_id: UUID
    ) -> AccessDecision:
        """Decide lesson access for the caller.

        Raises:
            CourseNotFoundError: Unknown course
            LessonNotFoundError: Lesson is not part of the course
        """
        course = await self._get_course(course_id)
        lesson = course.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFoundError(
                f"Lesson {lesson_id} not found in course {course_id}"
            )

        enrollment = None
        if identity.user_id is not None:
            enrollment = await self.enrollments.find_by_user_course(
                identity.user_id, course_id
            )

        decision = decide(identity, course, lesson, enrollment)
        logger.debug(
            "access_decided",
            course_id=str(course_id),
            lesson_id=str(lesson_id),
            allowed=decision.allowed,
            reason=decision.reason.value,
        )
        return decision

    async def require_course_dashboard(
        self, identity: Identity, course_id: UUID
    ) -> Course:
        """Return the course if the caller may see its analytics.

        Raises:
            CourseNotFoundError: Unknown course
            AuthorizationError: Caller is neither admin nor owner
        """
        course = await self._get_course(course_id)
        decision = decide_dashboard(identity, course)
        if not decision.allowed:
            logger.info(
                "dashboard_access_denied",
                course_id=str(course_id),
                reason=decision.reason.value,
            )
            raise AuthorizationError(decision.reason.value)
        return course

    def require_instructor_dashboard(
        self, identity: Identity, instructor_id: UUID
    ) -> None:
        """Raise AuthorizationError unless the caller may see this dashboard."""
        decision = decide_instructor_dashboard(identity, instructor_id)
        if not decision.allowed:
            logger.info(
                "dashboard_access_denied",
                instructor_id=str(instructor_id),
                reason=decision.reason.value,
            )
            raise AuthorizationError(decision.reason.value)
