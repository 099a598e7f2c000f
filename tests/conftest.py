"""Shared fixtures: in-memory ports, sample courses, API client, tokens."""

import os
import tempfile
from collections.abc import Callable, Iterator
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import pytest


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_DIR", str(Path(tempfile.gettempdir()) / "coursehub-test-logs"))

from fastapi.testclient import TestClient  # noqa: E402

from coursehub.auth.identity import Identity, JWTIdentityProvider  # noqa: E402
from coursehub.auth.permissions import UserRole  # noqa: E402
from coursehub.auth.security import create_access_token  # noqa: E402
from coursehub.config import Settings, get_settings  # noqa: E402
from coursehub.courses.models import Course, Lesson  # noqa: E402
from coursehub.courses.store import InMemoryCourseStore  # noqa: E402
from coursehub.enrollments.repository import InMemoryEnrollmentRepository  # noqa: E402
from coursehub.enrollments.service import EnrollmentService  # noqa: E402
from coursehub.main import EngineComponents, create_app  # noqa: E402
from coursehub.payments.gateway import InMemoryPaymentGateway  # noqa: E402


# ==============================================================================
# Identities
# ==============================================================================


@pytest.fixture
def settings() -> Settings:
    """Application settings for tests."""
    return get_settings()


@pytest.fixture
def owner_id() -> UUID:
    """Instructor who owns the sample course."""
    return uuid4()


@pytest.fixture
def student_id() -> UUID:
    """Test student ID."""
    return uuid4()


@pytest.fixture
def student(student_id: UUID) -> Identity:
    return Identity(user_id=student_id, role=UserRole.STUDENT)


@pytest.fixture
def instructor(owner_id: UUID) -> Identity:
    return Identity(user_id=owner_id, role=UserRole.INSTRUCTOR)


@pytest.fixture
def admin() -> Identity:
    return Identity(user_id=uuid4(), role=UserRole.ADMIN)


# ==============================================================================
# Courses
# ==============================================================================


@pytest.fixture
def make_course(owner_id: UUID) -> Callable[..., Course]:
    """Factory for courses with ``lesson_count`` lessons."""

    def factory(
        lesson_count: int = 4,
        price: Decimal | str = "10.00",
        published: bool = True,
        preview_first: bool = True,
        sections: list[str] | None = None,
        durations: list[int | None] | None = None,
        owner: UUID | None = None,
        title: str = "Python Basics",
    ) -> Course:
        course_id = uuid4()
        lessons = []
        for index in range(lesson_count):
            lessons.append(
                Lesson(
                    id=uuid4(),
                    course_id=course_id,
                    order=index + 1,
                    section=sections[index] if sections else "Main Content",
                    duration=durations[index] if durations else 20,
                    is_preview=preview_first and index == 0,
                    title=f"Lesson {index + 1}",
                )
            )
        return Course(
            id=course_id,
            owner_id=owner or owner_id,
            price=Decimal(price),
            published=published,
            lessons=tuple(lessons),
            title=title,
        )

    return factory


@pytest.fixture
def course(make_course: Callable[..., Course]) -> Course:
    """Published £10 course with four lessons, the first a preview."""
    return make_course()


@pytest.fixture
def free_course(make_course: Callable[..., Course]) -> Course:
    """Published free course with two lessons."""
    return make_course(lesson_count=2, price="0", preview_first=False, title="Intro")


# ==============================================================================
# Ports and services
# ==============================================================================


@pytest.fixture
def course_store(course: Course, free_course: Course) -> InMemoryCourseStore:
    return InMemoryCourseStore([course, free_course])


@pytest.fixture
def repository() -> InMemoryEnrollmentRepository:
    return InMemoryEnrollmentRepository()


@pytest.fixture
def gateway() -> InMemoryPaymentGateway:
    return InMemoryPaymentGateway()


@pytest.fixture
def enrollment_service(
    repository: InMemoryEnrollmentRepository,
    course_store: InMemoryCourseStore,
    gateway: InMemoryPaymentGateway,
    settings: Settings,
) -> EnrollmentService:
    return EnrollmentService(
        enrollments=repository,
        courses=course_store,
        gateway=gateway,
        settings=settings,
    )


# ==============================================================================
# HTTP
# ==============================================================================


@pytest.fixture
def client(
    course_store: InMemoryCourseStore,
    repository: InMemoryEnrollmentRepository,
    gateway: InMemoryPaymentGateway,
    settings: Settings,
) -> Iterator[TestClient]:
    """API client wired to the in-memory ports."""
    app = create_app(
        EngineComponents(
            course_store=course_store,
            enrollment_repository=repository,
            payment_gateway=gateway,
            identity_provider=JWTIdentityProvider(settings),
        )
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(settings: Settings) -> Callable[[Identity], dict[str, str]]:
    """Build an Authorization header for an identity."""

    def factory(identity: Identity) -> dict[str, str]:
        token = create_access_token(
            {"sub": str(identity.user_id), "role": identity.role.value},
            settings=settings,
        )
        return {"Authorization": f"Bearer {token}"}

    return factory
