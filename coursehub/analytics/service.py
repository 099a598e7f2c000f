"""Analytics service layer.

Loads a snapshot of courses and enrollments and runs the aggregator over it.
Access to dashboards is checked by the caller through EntitlementService.
"""

from uuid import UUID

from coursehub.core.errors import CourseNotFoundError
from coursehub.core.logging import get_logger
from coursehub.courses.models import Course
from coursehub.courses.store import CourseStore
from coursehub.enrollments.models import Enrollment
from coursehub.enrollments.repository import EnrollmentRepository

from . import aggregator
from .models import CourseAnalytics, InstructorAnalytics


logger = get_logger(__name__)


class AnalyticsService:
    """Instructor and course dashboards."""

    def __init__(self, enrollments: EnrollmentRepository, courses: CourseStore):
        self.enrollments = enrollments
        self.courses = courses

    async def _snapshot(self, courses: list[Course]) -> list[Enrollment]:
        snapshot: list[Enrollment] = []
        for course in courses:
            snapshot.extend(await self.enrollments.list_by_course(course.id))
        return snapshot

    async def get_instructor_analytics(self, instructor_id: UUID) -> InstructorAnalytics:
        """Revenue, per-course stats and engagement across an instructor's courses."""
        courses = await self.courses.list_instructor_courses(instructor_id)
        if not courses:
            return InstructorAnalytics(instructor_id=instructor_id)

        snapshot = await self._snapshot(courses)
        paid = aggregator.paid(snapshot)
        stats = [aggregator.course_stats(course, paid) for course in courses]

        result = InstructorAnalytics(
            instructor_id=instructor_id,
            total_courses=len(courses),
            total_students=aggregator.distinct_students(paid),
            total_revenue=aggregator.total_revenue(paid, courses),
            course_stats=stats,
            revenue_by_month=aggregator.revenue_by_month(paid, courses),
            engagement_buckets=aggregator.engagement_buckets(paid),
            enrollments_by_month=aggregator.enrollments_by_month(paid),
            course_completion_rates=aggregator.course_completion_rates(stats),
        )
        logger.debug(
            "instructor_analytics_computed",
            instructor_id=str(instructor_id),
            courses=len(courses),
            enrollments=len(snapshot),
        )
        return result

    async def get_course_analytics(
        self, course_id: UUID, course: Course | None = None
    ) -> CourseAnalytics:
        """Enrollment and progress stats for one course (paid enrollments only).

        Raises:
            CourseNotFoundError: Unknown course
        """
        if course is None:
            course = await self.courses.get_course(course_id)
            if course is None:
                raise CourseNotFoundError(f"Course {course_id} not found")

        paid = aggregator.paid(await self.enrollments.list_by_course(course_id))
        completed = sum(1 for e in paid if e.progress == 100)

        return CourseAnalytics(
            course_id=course_id,
            course_title=course.title,
            total_enrollments=len(paid),
            completed_enrollments=completed,
            completion_rate=aggregator.completion_rate(paid),
            avg_progress=aggregator.average_progress(paid),
            revenue=aggregator.total_revenue(paid, [course]),
            enrollments_by_date=aggregator.enrollments_by_date(paid),
            progress_distribution=aggregator.progress_distribution(paid),
        )
