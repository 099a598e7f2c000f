"""Access decision values."""

from dataclasses import dataclass
from enum import Enum


class AccessReason(str, Enum):
    """Why access was allowed or denied."""

    # Allow
    ADMIN_ROLE = "admin_role"  # Admin viewing any course
    COURSE_OWNER = "course_owner"  # Instructor viewing their own course
    ENROLLED = "enrolled"  # Paid (or free) enrollment
    PREVIEW_LESSON = "preview_lesson"  # Lesson open to everyone

    # Deny
    COURSE_NOT_PUBLISHED = "course_not_published"
    ENROLLMENT_REQUIRED = "enrollment_required"
    NOT_COURSE_OWNER = "not_course_owner"


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an entitlement check. Every decision carries its reason."""

    allowed: bool
    reason: AccessReason

    @classmethod
    def allow(cls, reason: AccessReason) -> "AccessDecision":
        return cls(allowed=True, reason=reason)

    @classmethod
    def deny(cls, reason: AccessReason) -> "AccessDecision":
        return cls(allowed=False, reason=reason)

    def __bool__(self) -> bool:
        return self.allowed
