"""Tests for AnalyticsService."""

from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from coursehub.analytics.service import AnalyticsService
from coursehub.core.errors import CourseNotFoundError
from coursehub.courses.models import Course
from coursehub.courses.store import InMemoryCourseStore
from coursehub.enrollments.models import (
    create_free_enrollment,
    create_paid_enrollment,
    create_pending_enrollment,
)
from coursehub.enrollments.repository import InMemoryEnrollmentRepository


@pytest.fixture
def analytics_service(
    repository: InMemoryEnrollmentRepository, course_store: InMemoryCourseStore
) -> AnalyticsService:
    return AnalyticsService(repository, course_store)


class TestInstructorAnalytics:
    """Tests for get_instructor_analytics."""

    @pytest.mark.asyncio
    async def test_rolls_up_owned_courses(
        self,
        analytics_service: AnalyticsService,
        repository: InMemoryEnrollmentRepository,
        owner_id: UUID,
        course: Course,
        free_course: Course,
    ) -> None:
        """Revenue and students come from paid enrollments only."""
        for index in range(3):
            await repository.get_or_create(
                create_paid_enrollment(uuid4(), course.id, f"pi_{index}")
            )
        for index in range(2):
            await repository.get_or_create(
                create_pending_enrollment(uuid4(), course.id, f"pi_pending_{index}")
            )
        await repository.get_or_create(create_free_enrollment(uuid4(), free_course.id))

        result = await analytics_service.get_instructor_analytics(owner_id)

        assert result.total_courses == 2
        assert result.total_students == 4
        assert result.total_revenue == Decimal("30.00")
        by_course = {s.course_id: s for s in result.course_stats}
        assert by_course[course.id].enrollments == 3
        assert by_course[free_course.id].revenue == Decimal(0)
        assert sum(b.count for b in result.engagement_buckets) == 4
        assert len(result.course_completion_rates) == 2

    @pytest.mark.asyncio
    async def test_instructor_without_courses(
        self, analytics_service: AnalyticsService
    ) -> None:
        """Unknown instructor gets zeros."""
        result = await analytics_service.get_instructor_analytics(uuid4())

        assert result.total_courses == 0
        assert result.total_revenue == Decimal(0)
        assert result.course_stats == []


class TestCourseAnalytics:
    """Tests for get_course_analytics."""

    @pytest.mark.asyncio
    async def test_course_stats(
        self,
        analytics_service: AnalyticsService,
        repository: InMemoryEnrollmentRepository,
        course: Course,
    ) -> None:
        """Completed enrollments and distribution cover paid records."""
        done, _ = await repository.get_or_create(
            create_paid_enrollment(uuid4(), course.id, "pi_done")
        )
        await repository.update(done.id, lambda e: e.copy(progress=100))
        await repository.get_or_create(create_paid_enrollment(uuid4(), course.id, "pi_new"))
        await repository.get_or_create(
            create_pending_enrollment(uuid4(), course.id, "pi_waiting")
        )

        result = await analytics_service.get_course_analytics(course.id)

        assert result.total_enrollments == 2
        assert result.completed_enrollments == 1
        assert result.completion_rate == 50
        assert result.avg_progress == 50
        assert result.revenue == Decimal("20.00")
        assert sum(r.count for r in result.progress_distribution) == 2

    @pytest.mark.asyncio
    async def test_course_without_enrollments(
        self, analytics_service: AnalyticsService, free_course: Course
    ) -> None:
        """Empty course yields zeros and empty series."""
        result = await analytics_service.get_course_analytics(free_course.id)

        assert result.total_enrollments == 0
        assert result.progress_distribution == []
        assert result.enrollments_by_date == []

    @pytest.mark.asyncio
    async def test_unknown_course(self, analytics_service: AnalyticsService) -> None:
        """Unknown course raises CourseNotFoundError."""
        with pytest.raises(CourseNotFoundError):
            await analytics_service.get_course_analytics(uuid4())
