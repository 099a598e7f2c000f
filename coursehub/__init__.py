"""CourseHub entitlement, enrollment, progress and analytics engine."""

__version__ = "0.1.0"
