"""Pydantic schemas for analytics API."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class MonthlyRevenueResponse(_FromAttributes):
    month: str = Field(..., description="Calendar month (YYYY-MM, UTC)")
    label: str
    revenue: Decimal


class MonthlyEnrollmentsResponse(_FromAttributes):
    month: str
    label: str
    enrollments: int


class EngagementBucketResponse(_FromAttributes):
    name: str
    lower: int
    upper: int
    count: int


class DateCountResponse(_FromAttributes):
    date: date
    count: int


class ProgressRangeResponse(_FromAttributes):
    name: str
    count: int


class CourseStatsResponse(_FromAttributes):
    course_id: UUID
    title: str
    price: Decimal
    enrollments: int
    revenue: Decimal
    avg_progress: int
    completion_rate: int


class CourseCompletionRateResponse(_FromAttributes):
    course_id: UUID
    name: str
    value: int


class InstructorAnalyticsResponse(_FromAttributes):
    """Instructor dashboard."""

    instructor_id: UUID
    total_courses: int
    total_students: int
    total_revenue: Decimal
    course_stats: list[CourseStatsResponse]
    revenue_by_month: list[MonthlyRevenueResponse]
    engagement_buckets: list[EngagementBucketResponse]
    enrollments_by_month: list[MonthlyEnrollmentsResponse]
    course_completion_rates: list[CourseCompletionRateResponse]


class CourseAnalyticsResponse(_FromAttributes):
    """Single course dashboard."""

    course_id: UUID
    course_title: str
    total_enrollments: int
    completed_enrollments: int
    completion_rate: int
    avg_progress: int
    revenue: Decimal
    enrollments_by_date: list[DateCountResponse]
    progress_distribution: list[ProgressRangeResponse]
