"""Tests for the entitlement evaluator.

Covers the rule priority for lesson access:
admin > owner > unpublished > enrolled > preview > deny
and the dashboard gates.
"""

from collections.abc import Callable
from uuid import uuid4

import pytest

from coursehub.auth.identity import Identity
from coursehub.auth.permissions import UserRole
from coursehub.courses.models import Course
from coursehub.enrollments.models import Enrollment, PaymentStatus
from coursehub.entitlements.evaluator import (
    decide,
    decide_dashboard,
    decide_instructor_dashboard,
)
from coursehub.entitlements.models import AccessDecision, AccessReason


def enrollment_for(
    identity: Identity, course: Course, status: PaymentStatus
) -> Enrollment:
    return Enrollment(user_id=identity.user_id, course_id=course.id, payment_status=status)


class TestLessonAccess:
    """Tests for decide()."""

    def test_anonymous_can_open_preview_lesson(self, course: Course) -> None:
        """Anonymous caller sees a preview lesson of a published course."""
        decision = decide(Identity.anonymous(), course, course.lessons[0], None)

        assert decision == AccessDecision.allow(AccessReason.PREVIEW_LESSON)

    def test_anonymous_denied_non_preview_lesson(self, course: Course) -> None:
        """Anonymous caller needs an enrollment for regular lessons."""
        decision = decide(Identity.anonymous(), course, course.lessons[1], None)

        assert decision == AccessDecision.deny(AccessReason.ENROLLMENT_REQUIRED)

    def test_student_with_completed_payment_is_allowed(
        self, student: Identity, course: Course
    ) -> None:
        """Paid enrollment opens every lesson."""
        enrollment = enrollment_for(student, course, PaymentStatus.COMPLETED)

        decision = decide(student, course, course.lessons[2], enrollment)

        assert decision.allowed
        assert decision.reason == AccessReason.ENROLLED

    @pytest.mark.parametrize("status", [PaymentStatus.PENDING, PaymentStatus.FAILED])
    def test_unpaid_enrollment_grants_only_preview(
        self, student: Identity, course: Course, status: PaymentStatus
    ) -> None:
        """Pending or failed payment behaves like no enrollment."""
        enrollment = enrollment_for(student, course, status)

        assert decide(student, course, course.lessons[0], enrollment).reason == (
            AccessReason.PREVIEW_LESSON
        )
        assert decide(student, course, course.lessons[1], enrollment) == (
            AccessDecision.deny(AccessReason.ENROLLMENT_REQUIRED)
        )

    def test_enrollment_of_another_user_is_ignored(
        self, student: Identity, course: Course
    ) -> None:
        """A paid enrollment only counts for its own user."""
        other = Identity(user_id=uuid4(), role=UserRole.STUDENT)
        enrollment = enrollment_for(other, course, PaymentStatus.COMPLETED)

        decision = decide(student, course, course.lessons[1], enrollment)

        assert not decision.allowed

    def test_unpublished_course_denies_enrolled_student(
        self, student: Identity, make_course: Callable[..., Course]
    ) -> None:
        """Unpublished beats enrollment and preview."""
        draft = make_course(published=False)
        enrollment = enrollment_for(student, draft, PaymentStatus.COMPLETED)

        for lesson in draft.lessons:
            decision = decide(student, draft, lesson, enrollment)
            assert decision == AccessDecision.deny(AccessReason.COURSE_NOT_PUBLISHED)

    def test_anonymous_denied_preview_of_unpublished_course(
        self, make_course: Callable[..., Course]
    ) -> None:
        """Preview lessons of a draft are hidden too."""
        draft = make_course(published=False)

        decision = decide(Identity.anonymous(), draft, draft.lessons[0], None)

        assert decision.reason == AccessReason.COURSE_NOT_PUBLISHED

    def test_owner_sees_unpublished_course(
        self, instructor: Identity, make_course: Callable[..., Course]
    ) -> None:
        """Owner rule runs before the published check."""
        draft = make_course(published=False)

        decision = decide(instructor, draft, draft.lessons[3], None)

        assert decision == AccessDecision.allow(AccessReason.COURSE_OWNER)

    def test_admin_beats_every_other_rule(
        self, admin: Identity, make_course: Callable[..., Course]
    ) -> None:
        """Admin is allowed even on a draft without enrollment."""
        draft = make_course(published=False)

        decision = decide(admin, draft, draft.lessons[1], None)

        assert decision == AccessDecision.allow(AccessReason.ADMIN_ROLE)

    def test_instructor_role_alone_is_not_ownership(self, course: Course) -> None:
        """Another instructor gets no bypass."""
        other_instructor = Identity(user_id=uuid4(), role=UserRole.INSTRUCTOR)

        decision = decide(other_instructor, course, course.lessons[1], None)

        assert decision.reason == AccessReason.ENROLLMENT_REQUIRED

    def test_owner_rule_applies_regardless_of_role(
        self, owner_id, course: Course
    ) -> None:
        """Ownership is by user id, not role."""
        owner_as_student = Identity(user_id=owner_id, role=UserRole.STUDENT)

        decision = decide(owner_as_student, course, course.lessons[2], None)

        assert decision.reason == AccessReason.COURSE_OWNER

    def test_decision_is_falsy_when_denied(self, course: Course) -> None:
        """AccessDecision truthiness mirrors ``allowed``."""
        assert not decide(Identity.anonymous(), course, course.lessons[1], None)
        assert decide(Identity.anonymous(), course, course.lessons[0], None)


class TestDashboardAccess:
    """Tests for the analytics gates."""

    def test_course_dashboard_owner_allowed(
        self, instructor: Identity, course: Course
    ) -> None:
        """Owner sees the course dashboard."""
        assert decide_dashboard(instructor, course).reason == AccessReason.COURSE_OWNER

    def test_course_dashboard_admin_allowed(self, admin: Identity, course: Course) -> None:
        """Admin sees any course dashboard."""
        assert decide_dashboard(admin, course).reason == AccessReason.ADMIN_ROLE

    @pytest.mark.parametrize("role", [UserRole.STUDENT, UserRole.INSTRUCTOR])
    def test_course_dashboard_others_denied(self, course: Course, role: UserRole) -> None:
        """Non-owners are denied with not_course_owner."""
        decision = decide_dashboard(Identity(user_id=uuid4(), role=role), course)

        assert decision == AccessDecision.deny(AccessReason.NOT_COURSE_OWNER)

    def test_course_dashboard_anonymous_denied(self, course: Course) -> None:
        """Anonymous callers never see dashboards."""
        assert not decide_dashboard(Identity.anonymous(), course)

    def test_instructor_dashboard_self_allowed(self, instructor: Identity) -> None:
        """Instructor sees their own dashboard."""
        assert decide_instructor_dashboard(instructor, instructor.user_id).allowed

    def test_instructor_dashboard_other_denied(self, instructor: Identity) -> None:
        """Instructor cannot see a colleague's dashboard."""
        decision = decide_instructor_dashboard(instructor, uuid4())

        assert decision.reason == AccessReason.NOT_COURSE_OWNER

    def test_instructor_dashboard_admin_allowed(self, admin: Identity) -> None:
        """Admin sees every instructor dashboard."""
        assert decide_instructor_dashboard(admin, uuid4()).allowed
