"""Instructor analytics aggregation.

Pure functions over a snapshot of enrollments and courses. Empty input never
raises; it yields zeros and empty lists. Revenue uses each course's current
price.
"""

from __future__ import annotations

import calendar
from collections import Counter, defaultdict
from collections.abc import Iterable
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from coursehub.enrollments.models import Enrollment
from coursehub.progress.aggregator import percentage, round_half_up

from .models import (
    CourseCompletionRate,
    CourseStats,
    DateCount,
    EngagementBucket,
    MonthlyEnrollments,
    MonthlyRevenue,
    ProgressRange,
)


if TYPE_CHECKING:
    from uuid import UUID

    from coursehub.courses.models import Course


# (name, lower inclusive, upper exclusive); the last bucket includes 100
ENGAGEMENT_BUCKETS = [
    ("Low (0-24%)", 0, 25),
    ("Medium (25-49%)", 25, 50),
    ("High (50-74%)", 50, 75),
    ("Very High (75-100%)", 75, 100),
]

# (name, upper inclusive)
PROGRESS_RANGES = [
    ("0-10%", 10),
    ("11-25%", 25),
    ("26-50%", 50),
    ("51-75%", 75),
    ("76-99%", 99),
    ("100%", 100),
]


def paid(enrollments: Iterable[Enrollment]) -> list[Enrollment]:
    """Enrollments whose payment completed."""
    return [e for e in enrollments if e.is_paid]


def _utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


def _month_key(dt: datetime) -> tuple[int, int]:
    utc = _utc(dt)
    return utc.year, utc.month


def _prices(courses: Iterable[Course]) -> dict[UUID, Decimal]:
    return {course.id: course.price for course in courses}


# ==============================================================================
# Core aggregates
# ==============================================================================


def total_revenue(enrollments: Iterable[Enrollment], courses: Iterable[Course]) -> Decimal:
    """Sum of course prices over paid enrollments of the given courses."""
    prices = _prices(courses)
    return sum(
        (prices[e.course_id] for e in paid(enrollments) if e.course_id in prices),
        Decimal(0),
    )


def completion_rate(enrollments: Iterable[Enrollment]) -> int:
    """Percent of paid enrollments at 100% progress; 0 with none paid."""
    paid_enrollments = paid(enrollments)
    completed = sum(1 for e in paid_enrollments if e.progress == 100)
    return percentage(completed, len(paid_enrollments))


def average_progress(enrollments: Iterable[Enrollment]) -> int:
    values = [e.progress for e in enrollments]
    if not values:
        return 0
    return round_half_up(Decimal(sum(values)) / len(values))


def revenue_by_month(
    enrollments: Iterable[Enrollment], courses: Iterable[Course]
) -> list[MonthlyRevenue]:
    """Paid revenue per UTC calendar month, oldest first.

    Months without paid enrollments are left out.
    """
    prices = _prices(courses)
    buckets: dict[tuple[int, int], Decimal] = defaultdict(Decimal)
    for e in paid(enrollments):
        if e.course_id in prices:
            buckets[_month_key(e.enrolled_at)] += prices[e.course_id]

    return [
        MonthlyRevenue(
            month=f"{year:04d}-{month:02d}",
            label=calendar.month_abbr[month],
            revenue=buckets[(year, month)],
        )
        for year, month in sorted(buckets)
    ]


def enrollments_by_month(enrollments: Iterable[Enrollment]) -> list[MonthlyEnrollments]:
    """Enrollment counts per UTC calendar month, oldest first (sparse)."""
    counts = Counter(_month_key(e.enrolled_at) for e in enrollments)
    return [
        MonthlyEnrollments(
            month=f"{year:04d}-{month:02d}",
            label=calendar.month_abbr[month],
            enrollments=counts[(year, month)],
        )
        for year, month in sorted(counts)
    ]


def engagement_buckets(enrollments: Iterable[Enrollment]) -> list[EngagementBucket]:
    """Counts in [0,25) [25,50) [50,75) [75,100]; all four always present."""
    counts = [0] * len(ENGAGEMENT_BUCKETS)
    last = len(ENGAGEMENT_BUCKETS) - 1
    for e in enrollments:
        for index, (_, lower, upper) in enumerate(ENGAGEMENT_BUCKETS):
            if lower <= e.progress < upper or (index == last and e.progress >= lower):
                counts[index] += 1
                break

    return [
        EngagementBucket(name=name, lower=lower, upper=upper, count=count)
        for (name, lower, upper), count in zip(ENGAGEMENT_BUCKETS, counts, strict=True)
    ]


def enrollments_by_date(enrollments: Iterable[Enrollment]) -> list[DateCount]:
    """Enrollment counts per UTC calendar date, ascending."""
    counts: Counter[date] = Counter(_utc(e.enrolled_at).date() for e in enrollments)
    return [DateCount(date=day, count=counts[day]) for day in sorted(counts)]


def progress_distribution(enrollments: Iterable[Enrollment]) -> list[ProgressRange]:
    """Six progress ranges; an empty list when there are no enrollments."""
    enrollments = list(enrollments)
    if not enrollments:
        return []

    counts = [0] * len(PROGRESS_RANGES)
    for e in enrollments:
        for index, (_, upper) in enumerate(PROGRESS_RANGES):
            if e.progress <= upper:
                counts[index] += 1
                break

    return [
        ProgressRange(name=name, count=count)
        for (name, _), count in zip(PROGRESS_RANGES, counts, strict=True)
    ]


# ==============================================================================
# Per-course rollups
# ==============================================================================


def course_stats(course: Course, enrollments: Iterable[Enrollment]) -> CourseStats:
    """Stats for one course over its paid enrollments."""
    course_enrollments = [
        e for e in paid(enrollments) if e.course_id == course.id
    ]
    return CourseStats(
        course_id=course.id,
        title=course.title,
        price=course.price,
        enrollments=len(course_enrollments),
        revenue=course.price * len(course_enrollments),
        avg_progress=average_progress(course_enrollments),
        completion_rate=completion_rate(course_enrollments),
    )


def course_completion_rates(stats: Iterable[CourseStats]) -> list[CourseCompletionRate]:
    return [
        CourseCompletionRate(course_id=s.course_id, name=s.title, value=s.completion_rate)
        for s in stats
    ]


def distinct_students(enrollments: Iterable[Enrollment]) -> int:
    """Number of distinct users with a paid enrollment."""
    return len({e.user_id for e in paid(enrollments)})
