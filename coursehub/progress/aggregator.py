"""Progress aggregation over an enrollment and its course.

Pure functions: percentages, per-section breakdown, next lesson and the
completion-time estimate.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from coursehub.core.errors import ValidationError
from coursehub.courses.models import Course, Lesson
from coursehub.enrollments.models import Enrollment


DEFAULT_DAILY_BUDGET_MINUTES = 45
DEFAULT_LESSON_DURATION_MINUTES = 30

DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30


def round_half_up(value: Decimal | float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percentage(part: int, whole: int) -> int:
    """``round(100 * part / whole)``, 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return round_half_up(Decimal(100) * part / whole)


@dataclass(frozen=True)
class SectionProgress:
    name: str
    completed: int
    total: int
    percentage: int


@dataclass(frozen=True)
class CompletionEstimate:
    remaining_minutes: int
    days_remaining: int
    label: str


def completed_in_course(enrollment: Enrollment, course: Course) -> frozenset:
    """Completed lesson ids that still exist in the course."""
    return enrollment.completed_lessons & course.lesson_ids


def compute_progress(enrollment: Enrollment, course: Course) -> int:
    """Whole-number completion percentage in [0, 100]."""
    return percentage(
        len(completed_in_course(enrollment, course)), len(course.lessons)
    )


def section_breakdown(enrollment: Enrollment, course: Course) -> list[SectionProgress]:
    """Per-section counts, sections in the order they first appear."""
    totals: dict[str, int] = {}
    done: dict[str, int] = {}
    for lesson in course.lessons:
        totals[lesson.section] = totals.get(lesson.section, 0) + 1
        done.setdefault(lesson.section, 0)
        if lesson.id in enrollment.completed_lessons:
            done[lesson.section] += 1

    return [
        SectionProgress(
            name=name,
            completed=done[name],
            total=total,
            percentage=percentage(done[name], total),
        )
        for name, total in totals.items()
    ]


def canonical_lessons(course: Course) -> list[Lesson]:
    """Lessons sorted by (section first-seen index, order, id)."""
    section_index: dict[str, int] = {}
    for lesson in course.lessons:
        section_index.setdefault(lesson.section, len(section_index))

    return sorted(
        course.lessons,
        key=lambda lesson: (section_index[lesson.section], lesson.order, lesson.id),
    )


def next_lesson(enrollment: Enrollment, course: Course) -> Lesson | None:
    """First incomplete lesson in canonical order.

    With every lesson complete this returns the first lesson (review mode);
    a course without lessons has no next lesson.
    """
    ordered = canonical_lessons(course)
    if not ordered:
        return None

    for lesson in ordered:
        if lesson.id not in enrollment.completed_lessons:
            return lesson
    return ordered[0]


def _plural(count: int, unit: str) -> str:
    return f"About {count} {unit}" if count == 1 else f"About {count} {unit}s"


def completion_label(days: int) -> str:
    if days <= 1:
        return "Less than 1 day"
    if days < DAYS_PER_WEEK:
        return _plural(days, "day")
    if days < DAYS_PER_MONTH:
        return _plural(math.ceil(days / DAYS_PER_WEEK), "week")
    return _plural(math.ceil(days / DAYS_PER_MONTH), "month")


def estimated_completion(
    enrollment: Enrollment,
    course: Course,
    daily_budget_minutes: int = DEFAULT_DAILY_BUDGET_MINUTES,
    default_duration_minutes: int = DEFAULT_LESSON_DURATION_MINUTES,
) -> CompletionEstimate:
    """Estimate the study time left.

    Lessons without a duration count as ``default_duration_minutes``.

    Raises:
        ValidationError: ``daily_budget_minutes`` is not positive
    """
    if daily_budget_minutes <= 0:
        msg = f"Daily study budget must be positive, got {daily_budget_minutes}"
        raise ValidationError(msg)

    remaining = sum(
        lesson.duration if lesson.duration is not None else default_duration_minutes
        for lesson in course.lessons
        if lesson.id not in enrollment.completed_lessons
    )
    days = math.ceil(remaining / daily_budget_minutes)

    return CompletionEstimate(
        remaining_minutes=remaining,
        days_remaining=days,
        label=completion_label(days),
    )
