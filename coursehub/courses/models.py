"""Course and lesson read models.

Course/lesson authoring lives outside the engine; these are the read-only
shapes the engine consumes, plus the Cassandra tables the read adapter
queries.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID


DEFAULT_SECTION = "Main Content"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    owner_id UUID,
    title TEXT,
    price DECIMAL,
    currency TEXT,
    published BOOLEAN
)
"""

# Lessons clustered by their position in the course's lesson list
LESSONS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_course (
    course_id UUID,
    position INT,
    lesson_id UUID,
    title TEXT,
    section TEXT,
    lesson_order INT,
    duration_minutes INT,
    is_preview BOOLEAN,
    PRIMARY KEY ((course_id), position)
) WITH CLUSTERING ORDER BY (position ASC)
"""

# Lookup: courses per instructor (analytics dashboards)
COURSES_BY_OWNER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses_by_owner (
    owner_id UUID,
    course_id UUID,
    PRIMARY KEY ((owner_id), course_id)
)
"""

COURSES_TABLES_CQL = [
    COURSES_TABLE_CQL,
    LESSONS_BY_COURSE_TABLE_CQL,
    COURSES_BY_OWNER_TABLE_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


@dataclass(frozen=True)
class Lesson:
    """A lesson inside a course.

    ``duration`` is in minutes; None means the author never set it.
    """

    id: UUID
    course_id: UUID
    order: int = 0
    section: str = DEFAULT_SECTION
    duration: int | None = None
    is_preview: bool = False
    title: str = ""

    def __post_init__(self) -> None:
        if self.duration is not None and self.duration < 0:
            msg = f"Lesson duration must be >= 0, got {self.duration}"
            raise ValueError(msg)
        if not self.section:
            object.__setattr__(self, "section", DEFAULT_SECTION)

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        """Create Lesson instance from a lessons_by_course row."""
        return cls(
            id=row.lesson_id,
            course_id=row.course_id,
            order=row.lesson_order or 0,
            section=row.section or DEFAULT_SECTION,
            duration=row.duration_minutes,
            is_preview=bool(row.is_preview),
            title=row.title or "",
        )


@dataclass(frozen=True)
class Course:
    """A course with its ordered lesson list."""

    id: UUID
    owner_id: UUID
    price: Decimal = Decimal(0)
    published: bool = False
    lessons: tuple[Lesson, ...] = field(default_factory=tuple)
    title: str = ""
    currency: str = "gbp"

    def __post_init__(self) -> None:
        if self.price < 0:
            msg = f"Course price must be >= 0, got {self.price}"
            raise ValueError(msg)
        object.__setattr__(self, "lessons", tuple(self.lessons))

    @property
    def is_free(self) -> bool:
        return self.price == 0

    @property
    def lesson_ids(self) -> frozenset[UUID]:
        return frozenset(lesson.id for lesson in self.lessons)

    def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        for lesson in self.lessons:
            if lesson.id == lesson_id:
                return lesson
        return None

    @classmethod
    def from_row(cls, row: Any, lessons: list[Lesson] | None = None) -> "Course":
        """Create Course instance from a courses row."""
        return cls(
            id=row.id,
            owner_id=row.owner_id,
            price=row.price if row.price is not None else Decimal(0),
            published=bool(row.published),
            lessons=tuple(lessons or ()),
            title=row.title or "",
            currency=row.currency or "gbp",
        )

    def __repr__(self) -> str:
        return (
            f"<Course {self.id} price={self.price} "
            f"published={self.published} lessons={len(self.lessons)}>"
        )
