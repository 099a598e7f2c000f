"""Course progress view for a single learner."""

from dataclasses import dataclass
from uuid import UUID

from coursehub.config.settings import Settings, get_settings
from coursehub.core.errors import CourseNotFoundError, EnrollmentNotFoundError
from coursehub.courses.models import Course, Lesson
from coursehub.courses.store import CourseStore
from coursehub.enrollments.models import Enrollment
from coursehub.enrollments.repository import EnrollmentRepository

from .aggregator import (
    CompletionEstimate,
    SectionProgress,
    compute_progress,
    estimated_completion,
    next_lesson,
    section_breakdown,
)


@dataclass(frozen=True)
class CourseProgressView:
    enrollment: Enrollment
    course: Course
    progress: int
    sections: list[SectionProgress]
    next_lesson: Lesson | None
    review_mode: bool
    estimate: CompletionEstimate


class ProgressService:
    """Builds progress views from stored enrollments."""

    def __init__(
        self,
        enrollments: EnrollmentRepository,
        courses: CourseStore,
        settings: Settings | None = None,
    ):
        self.enrollments = enrollments
        self.courses = courses
        self.settings = settings or get_settings()

    async def get_course_progress(self, user_id: UUID, course_id: UUID) -> CourseProgressView:
        """Progress, sections, next lesson and estimate for one enrollment.

        Raises:
            CourseNotFoundError: Unknown course
            EnrollmentNotFoundError: User is not enrolled
        """
        course = await self.courses.get_course(course_id)
        if course is None:
            raise CourseNotFoundError(f"Course {course_id} not found")

        enrollment = await self.enrollments.find_by_user_course(user_id, course_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(
                f"User {user_id} is not enrolled in course {course_id}"
            )

        progress = compute_progress(enrollment, course)
        return CourseProgressView(
            enrollment=enrollment,
            course=course,
            progress=progress,
            sections=section_breakdown(enrollment, course),
            next_lesson=next_lesson(enrollment, course),
            review_mode=bool(course.lessons)
            and course.lesson_ids <= enrollment.completed_lessons,
            estimate=estimated_completion(
                enrollment,
                course,
                daily_budget_minutes=self.settings.daily_study_budget_minutes,
                default_duration_minutes=self.settings.default_lesson_duration_minutes,
            ),
        )
