"""Instructor analytics: revenue, completion, engagement, time series."""

from .models import CourseAnalytics, InstructorAnalytics
from .service import AnalyticsService


__all__ = [
    "AnalyticsService",
    "CourseAnalytics",
    "InstructorAnalytics",
]
