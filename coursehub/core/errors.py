"""Engine error taxonomy.

Every error carries a stable ``code`` used for HTTP mapping and logs.
The entitlement evaluator never raises these; it returns a Deny decision and
callers turn it into AuthorizationError when a gated read is attempted.
"""

from fastapi import status


class EngineError(Exception):
    """Base engine error."""

    default_message = "Engine error"
    default_code = "engine_error"

    def __init__(self, message: str | None = None, code: str | None = None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        super().__init__(self.message)


class ValidationError(EngineError):
    """Malformed input. Fail fast, never retried."""

    default_message = "Invalid input"
    default_code = "validation_error"


class LessonNotInCourseError(ValidationError):
    """Lesson id is not part of the enrollment's course."""

    default_message = "Lesson does not belong to this course"
    default_code = "lesson_not_in_course"


class NotFoundError(EngineError):
    """Course, lesson or enrollment absent."""

    default_message = "Resource not found"
    default_code = "not_found"


class CourseNotFoundError(NotFoundError):
    default_message = "Course not found"
    default_code = "course_not_found"


class LessonNotFoundError(NotFoundError):
    default_message = "Lesson not found"
    default_code = "lesson_not_found"


class EnrollmentNotFoundError(NotFoundError):
    default_message = "Enrollment not found"
    default_code = "enrollment_not_found"


class ConflictError(EngineError):
    """True invariant violation or exhausted optimistic retries."""

    default_message = "Conflicting update"
    default_code = "conflict"


class PaymentNotConfirmedError(EngineError):
    """Paid enrollment requested without a successful, sufficient payment."""

    default_message = "Payment has not been confirmed"
    default_code = "payment_not_confirmed"


class AuthorizationError(EngineError):
    """Entitlement denied for a gated read."""

    default_message = "Access denied"
    default_code = "access_denied"

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        super().__init__(message or f"Access denied: {reason}", self.default_code)


class UnauthenticatedError(EngineError):
    """Credential missing, invalid or expired."""

    default_message = "Authentication required"
    default_code = "unauthenticated"


class UpstreamError(EngineError):
    """Identity or payment provider failed after retries were exhausted."""

    default_message = "Upstream service unavailable"
    default_code = "upstream_error"

    def __init__(
        self,
        message: str | None = None,
        service: str | None = None,
        attempts: int = 0,
    ):
        self.service = service
        self.attempts = attempts
        super().__init__(message)


_STATUS_BY_TYPE: list[tuple[type[EngineError], int]] = [
    (LessonNotInCourseError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (PaymentNotConfirmedError, status.HTTP_402_PAYMENT_REQUIRED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (UpstreamError, status.HTTP_502_BAD_GATEWAY),
]


def http_status_for(error: EngineError) -> int:
    """Map an engine error to its HTTP status code."""
    for error_type, status_code in _STATUS_BY_TYPE:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR
