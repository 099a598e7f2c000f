"""Analytics value types.

Plain frozen dataclasses produced by the aggregator and mapped 1:1 onto the
response schemas.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class MonthlyRevenue:
    month: str  # YYYY-MM
    label: str  # abbreviated month name
    revenue: Decimal


@dataclass(frozen=True)
class MonthlyEnrollments:
    month: str
    label: str
    enrollments: int


@dataclass(frozen=True)
class EngagementBucket:
    """Enrollments with ``lower <= progress < upper`` (the last bucket is closed)."""

    name: str
    lower: int
    upper: int
    count: int


@dataclass(frozen=True)
class DateCount:
    date: date
    count: int


@dataclass(frozen=True)
class ProgressRange:
    name: str
    count: int


@dataclass(frozen=True)
class CourseStats:
    course_id: UUID
    title: str
    price: Decimal
    enrollments: int
    revenue: Decimal
    avg_progress: int
    completion_rate: int


@dataclass(frozen=True)
class CourseCompletionRate:
    course_id: UUID
    name: str
    value: int


@dataclass(frozen=True)
class InstructorAnalytics:
    instructor_id: UUID
    total_courses: int = 0
    total_students: int = 0
    total_revenue: Decimal = Decimal(0)
    course_stats: list[CourseStats] = field(default_factory=list)
    revenue_by_month: list[MonthlyRevenue] = field(default_factory=list)
    engagement_buckets: list[EngagementBucket] = field(default_factory=list)
    enrollments_by_month: list[MonthlyEnrollments] = field(default_factory=list)
    course_completion_rates: list[CourseCompletionRate] = field(default_factory=list)


@dataclass(frozen=True)
class CourseAnalytics:
    course_id: UUID
    course_title: str = ""
    total_enrollments: int = 0
    completed_enrollments: int = 0
    completion_rate: int = 0
    avg_progress: int = 0
    revenue: Decimal = Decimal(0)
    enrollments_by_date: list[DateCount] = field(default_factory=list)
    progress_distribution: list[ProgressRange] = field(default_factory=list)
