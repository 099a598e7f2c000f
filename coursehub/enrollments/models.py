"""Enrollment entity and Cassandra schema.

An enrollment binds one user to one course. It is created once (free or
after a confirmed payment), only ever gains completed lessons, and is never
hard-deleted.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4


if TYPE_CHECKING:
    from cassandra.cluster import Row


class PaymentStatus(str, Enum):
    """Payment state of an enrollment."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class EnrollmentState(str, Enum):
    """Lifecycle state derived from payment status and progress."""

    PENDING_PAYMENT = "pending_payment"
    PAYMENT_FAILED = "payment_failed"
    ENROLLED = "enrolled"
    COMPLETED = "completed"


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Primary record, one row per (user, course). All conditional writes go here.
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    user_id UUID,
    course_id UUID,
    enrollment_id UUID,
    payment_status TEXT,
    payment_intent_id TEXT,
    completed_lessons SET<UUID>,
    progress INT,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    version INT,
    PRIMARY KEY ((user_id), course_id)
)
"""

# Lookup: enrollment id -> (user, course)
ENROLLMENTS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_id (
    enrollment_id UUID PRIMARY KEY,
    user_id UUID,
    course_id UUID
)
"""

# Denormalized copy for per-course analytics reads
ENROLLMENTS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_course (
    course_id UUID,
    user_id UUID,
    enrollment_id UUID,
    payment_status TEXT,
    payment_intent_id TEXT,
    completed_lessons SET<UUID>,
    progress INT,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    version INT,
    PRIMARY KEY ((course_id), user_id)
)
"""

# Idempotency key for payment-triggered creation
ENROLLMENT_PAYMENT_INTENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollment_payment_intents (
    payment_intent_id TEXT PRIMARY KEY,
    user_id UUID,
    course_id UUID,
    enrollment_id UUID
)
"""

ENROLLMENTS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_ID_TABLE_CQL,
    ENROLLMENTS_BY_COURSE_TABLE_CQL,
    ENROLLMENT_PAYMENT_INTENTS_TABLE_CQL,
]


# ==============================================================================
# Entity
# ==============================================================================


@dataclass
class Enrollment:
    """A user's enrollment in a course.

    ``progress`` is derived from ``completed_lessons`` and the course's lesson
    count; it is stored so analytics can read it without loading courses.
    ``version`` is bumped on every persisted change and used as the
    optimistic-concurrency token.
    """

    user_id: UUID
    course_id: UUID
    payment_status: PaymentStatus = PaymentStatus.PENDING
    id: UUID = field(default_factory=uuid4)
    completed_lessons: frozenset[UUID] = field(default_factory=frozenset)
    progress: int = 0
    enrolled_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    last_accessed_at: datetime | None = None
    payment_intent_id: str | None = None
    version: int = 1

    def __post_init__(self) -> None:
        self.completed_lessons = frozenset(self.completed_lessons)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED

    @property
    def state(self) -> EnrollmentState:
        if self.payment_status == PaymentStatus.PENDING:
            return EnrollmentState.PENDING_PAYMENT
        if self.payment_status == PaymentStatus.FAILED:
            return EnrollmentState.PAYMENT_FAILED
        if self.completed_at is not None:
            return EnrollmentState.COMPLETED
        return EnrollmentState.ENROLLED

    def copy(self, **changes: Any) -> "Enrollment":
        """Return a modified copy; the original is left untouched."""
        return replace(self, **changes)

    @classmethod
    def from_row(cls, row: "Row") -> "Enrollment":
        """Create instance from an ``enrollments`` or ``enrollments_by_course`` row."""
        return cls(
            id=row.enrollment_id,
            user_id=row.user_id,
            course_id=row.course_id,
            payment_status=PaymentStatus(row.payment_status),
            payment_intent_id=row.payment_intent_id,
            completed_lessons=frozenset(row.completed_lessons or ()),
            progress=row.progress or 0,
            enrolled_at=ensure_utc_aware(row.enrolled_at) or datetime.now(UTC),
            completed_at=ensure_utc_aware(row.completed_at),
            last_accessed_at=ensure_utc_aware(row.last_accessed_at),
            version=row.version or 1,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "payment_status": self.payment_status.value,
            "payment_intent_id": self.payment_intent_id,
            "completed_lessons": sorted(self.completed_lessons, key=str),
            "progress": self.progress,
            "state": self.state.value,
            "enrolled_at": self.enrolled_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "last_accessed_at": (
                self.last_accessed_at.isoformat() if self.last_accessed_at else None
            ),
            "version": self.version,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment {self.id} user={self.user_id} course={self.course_id} "
            f"status={self.payment_status.value} progress={self.progress}>"
        )


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_free_enrollment(user_id: UUID, course_id: UUID) -> Enrollment:
    """Enrollment for a free course: paid from the start."""
    return Enrollment(
        user_id=user_id,
        course_id=course_id,
        payment_status=PaymentStatus.COMPLETED,
    )


def create_paid_enrollment(
    user_id: UUID, course_id: UUID, payment_intent_id: str
) -> Enrollment:
    """Enrollment created after a confirmed payment."""
    return Enrollment(
        user_id=user_id,
        course_id=course_id,
        payment_status=PaymentStatus.COMPLETED,
        payment_intent_id=payment_intent_id,
    )


def create_pending_enrollment(
    user_id: UUID, course_id: UUID, payment_intent_id: str
) -> Enrollment:
    """Enrollment awaiting payment (checkout started)."""
    return Enrollment(
        user_id=user_id,
        course_id=course_id,
        payment_status=PaymentStatus.PENDING,
        payment_intent_id=payment_intent_id,
    )
