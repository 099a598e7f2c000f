# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Read-only course store port and adapters.

The engine never writes courses; authoring lives in another service.
"""

from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from coursehub.core.logging import get_logger

from .models import Course, Lesson


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)


class CourseStore(Protocol):
    """Read access to courses and their lessons."""

    async def get_course(self, course_id: UUID) -> Course | None: ...

    async def get_lessons(self, course_id: UUID) -> list[Lesson]: ...

    async def list_instructor_courses(self, instructor_id: UUID) -> list[Course]: ...


class InMemoryCourseStore:
    """Dictionary-backed course store for tests and local development."""

    def __init__(self, courses: list[Course] | None = None):
        self._courses: dict[UUID, Course] = {}
        for course in courses or []:
            self.add(course)

    def add(self, course: Course) -> None:
        self._courses[course.id] = course

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def get_lessons(self, course_id: UUID) -> list[Lesson]:
        course = self._courses.get(course_id)
        return list(course.lessons) if course else []

    async def list_instructor_courses(self, instructor_id: UUID) -> list[Course]:
        return [c for c in self._courses.values() if c.owner_id == instructor_id]


class CassandraCourseStore:
    """Course store reading the ``courses`` tables."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._get_course = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.courses WHERE id = ?
        """)

        self._get_lessons = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lessons_by_course
            WHERE course_id = ?
        """)

        self._get_owner_courses = self.session.prepare(f"""
            SELECT course_id FROM {self.keyspace}.courses_by_owner
            WHERE owner_id = ?
        """)

    async def get_course(self, course_id: UUID) -> Course | None:
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        if not row:
            return None
        lessons = await self.get_lessons(course_id)
        return Course.from_row(row, lessons)

    async def get_lessons(self, course_id: UUID) -> list[Lesson]:
        rows = await self.session.aexecute(self._get_lessons, [course_id])
        return [Lesson.from_row(row) for row in rows]

    async def list_instructor_courses(self, instructor_id: UUID) -> list[Course]:
        rows = await self.session.aexecute(self._get_owner_courses, [instructor_id])
        courses = []
        for row in rows:
            course = await self.get_course(row.course_id)
            if course is None:
                logger.warning(
                    "owner_course_missing",
                    owner_id=str(instructor_id),
                    course_id=str(row.course_id),
                )
                continue
            courses.append(course)
        return courses
