"""Entitlement evaluator.

The single place that decides who may see what. Pure functions over the
data model: no I/O and no exceptions.

Lesson access, first matching rule wins:
1. Admin role: allow
2. Course owner: allow
3. Unpublished course: deny
4. Paid enrollment: allow
5. Preview lesson: allow
6. Otherwise: deny (enrollment required)
"""

from uuid import UUID

from coursehub.auth.identity import Identity
from coursehub.auth.permissions import is_admin
from coursehub.courses.models import Course, Lesson
from coursehub.enrollments.models import Enrollment

from .models import AccessDecision, AccessReason


def decide(
    identity: Identity,
    course: Course,
    lesson: Lesson,
    enrollment: Enrollment | None,
) -> AccessDecision:
    """Decide whether ``identity`` may open ``lesson`` of ``course``."""
    if is_admin(identity.role):
        return AccessDecision.allow(AccessReason.ADMIN_ROLE)

    if identity.user_id is not None and identity.user_id == course.owner_id:
        return AccessDecision.allow(AccessReason.COURSE_OWNER)

    if not course.published:
        return AccessDecision.deny(AccessReason.COURSE_NOT_PUBLISHED)

    if (
        enrollment is not None
        and enrollment.is_paid
        and enrollment.user_id == identity.user_id
        and enrollment.course_id == course.id
    ):
        return AccessDecision.allow(AccessReason.ENROLLED)

    if lesson.is_preview:
        return AccessDecision.allow(AccessReason.PREVIEW_LESSON)

    return AccessDecision.deny(AccessReason.ENROLLMENT_REQUIRED)


def decide_dashboard(identity: Identity, course: Course) -> AccessDecision:
    """Course analytics are visible to admins and the course owner."""
    if is_admin(identity.role):
        return AccessDecision.allow(AccessReason.ADMIN_ROLE)
    if identity.user_id is not None and identity.user_id == course.owner_id:
        return AccessDecision.allow(AccessReason.COURSE_OWNER)
    return AccessDecision.deny(AccessReason.NOT_COURSE_OWNER)


def decide_instructor_dashboard(
    identity: Identity, instructor_id: UUID
) -> AccessDecision:
    """Instructor analytics are visible to admins and the instructor."""
    if is_admin(identity.role):
        return AccessDecision.allow(AccessReason.ADMIN_ROLE)
    if identity.user_id is not None and identity.user_id == instructor_id:
        return AccessDecision.allow(AccessReason.COURSE_OWNER)
    return AccessDecision.deny(AccessReason.NOT_COURSE_OWNER)
