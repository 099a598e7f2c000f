"""Progress aggregation: percentages, sections, next lesson, estimates."""

from .aggregator import (
    CompletionEstimate,
    SectionProgress,
    canonical_lessons,
    compute_progress,
    estimated_completion,
    next_lesson,
    section_breakdown,
)


__all__ = [
    "CompletionEstimate",
    "SectionProgress",
    "canonical_lessons",
    "compute_progress",
    "estimated_completion",
    "next_lesson",
    "section_breakdown",
]
