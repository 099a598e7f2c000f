"""Course read models and the read-only course store."""

from .models import DEFAULT_SECTION, Course, Lesson
from .store import CassandraCourseStore, CourseStore, InMemoryCourseStore


__all__ = [
    "DEFAULT_SECTION",
    "CassandraCourseStore",
    "Course",
    "CourseStore",
    "InMemoryCourseStore",
    "Lesson",
]
