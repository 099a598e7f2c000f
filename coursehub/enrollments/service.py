"""Enrollment lifecycle service.

Business logic for:
- Free and paid enrollment (idempotent get-or-create)
- Checkout and payment webhook events
- Lesson completion with monotonic progress
- Enrollment lookups

States: NotEnrolled -> PendingPayment -> Enrolled -> Completed.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from coursehub.auth.identity import Identity
from coursehub.config.settings import Settings, get_settings
from coursehub.core.errors import (
    AuthorizationError,
    CourseNotFoundError,
    EnrollmentNotFoundError,
    LessonNotInCourseError,
    PaymentNotConfirmedError,
    ValidationError,
)
from coursehub.core.logging import get_logger
from coursehub.courses.models import Course, Lesson
from coursehub.courses.store import CourseStore
from coursehub.entitlements.evaluator import decide
from coursehub.payments.gateway import PaymentGateway
from coursehub.payments.models import PaymentEventType, PaymentIntent, PaymentIntentStatus
from coursehub.progress.aggregator import compute_progress

from .hooks import CompletionHook, LoggingCompletionHook
from .models import (
    Enrollment,
    PaymentStatus,
    create_free_enrollment,
    create_paid_enrollment,
    create_pending_enrollment,
)
from .repository import EnrollmentRepository


logger = get_logger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    """Enrollment after checkout; ``intent`` is None when nothing is owed."""

    enrollment: Enrollment
    intent: PaymentIntent | None = None


class EnrollmentService:
    """Service for the enrollment lifecycle."""

    def __init__(
        self,
        enrollments: EnrollmentRepository,
        courses: CourseStore,
        gateway: PaymentGateway,
        completion_hook: CompletionHook | None = None,
        settings: Settings | None = None,
    ):
        self.enrollments = enrollments
        self.courses = courses
        self.gateway = gateway
        self.completion_hook = completion_hook or LoggingCompletionHook()
        self.settings = settings or get_settings()

    async def _get_course(self, course_id: UUID) -> Course:
        course = await self.courses.get_course(course_id)
        if course is None:
            raise CourseNotFoundError(f"Course {course_id} not found")
        return course

    def _require_published(self, course: Course) -> None:
        if not course.published:
            raise ValidationError(f"Course {course.id} is not open for enrollment")

    # ==========================================================================
    # Creation
    # ==========================================================================

    async def create_free_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Enroll in a free course. An existing enrollment is returned as is.

        Raises:
            CourseNotFoundError: Unknown course
            ValidationError: The course is not free or not published
        """
        course = await self._get_course(course_id)
        self._require_published(course)
        if not course.is_free:
            raise ValidationError(f"Course {course_id} is not free")

        enrollment, created = await self.enrollments.get_or_create(
            create_free_enrollment(user_id, course_id)
        )
        if created:
            logger.info(
                "enrollment_created",
                enrollment_id=str(enrollment.id),
                user_id=str(user_id),
                course_id=str(course_id),
                source="free",
            )
        return enrollment

    def _check_intent(
        self, intent: PaymentIntent, course: Course, user_id: UUID
    ) -> None:
        if not intent.covers(course.price):
            logger.warning(
                "payment_confirmation_failed",
                intent_id=intent.intent_id,
                course_id=str(course.id),
                status=intent.status.value,
                amount=str(intent.amount),
                price=str(course.price),
            )
            raise PaymentNotConfirmedError(
                f"Payment {intent.intent_id} is not a successful payment "
                f"of at least {course.price}"
            )

        if intent.currency and intent.currency != course.currency.lower():
            raise PaymentNotConfirmedError(
                f"Payment {intent.intent_id} currency {intent.currency} "
                f"does not match course currency {course.currency}"
            )

        # Metadata is optional, but when present it must name this purchase
        meta_user = intent.metadata.get("user_id")
        meta_course = intent.metadata.get("course_id")
        if (meta_user and meta_user != str(user_id)) or (
            meta_course and meta_course != str(course.id)
        ):
            raise PaymentNotConfirmedError(
                f"Payment {intent.intent_id} was made for a different enrollment"
            )

    async def create_paid_enrollment(
        self, user_id: UUID, course_id: UUID, payment_intent_id: str
    ) -> Enrollment:
        """Enroll after a payment; safe to retry with the same intent.

        Raises:
            CourseNotFoundError: Unknown course
            PaymentNotConfirmedError: Intent not succeeded, too small, or
                already bound to another enrollment
            UpstreamError: Gateway unavailable after retries
        """
        course = await self._get_course(course_id)

        existing = await self.enrollments.find_by_user_course(user_id, course_id)
        if existing is not None and existing.is_paid:
            return existing

        intent = await self.gateway.confirm(payment_intent_id)
        self._check_intent(intent, course, user_id)

        enrollment, created = await self.enrollments.get_or_create(
            create_paid_enrollment(user_id, course_id, payment_intent_id)
        )
        if enrollment.user_id != user_id or enrollment.course_id != course_id:
            raise PaymentNotConfirmedError(
                f"Payment {payment_intent_id} is already bound to another enrollment"
            )

        if created:
            logger.info(
                "enrollment_created",
                enrollment_id=str(enrollment.id),
                user_id=str(user_id),
                course_id=str(course_id),
                payment_intent_id=payment_intent_id,
                source="payment",
            )
            return enrollment

        if enrollment.is_paid:
            return enrollment

        def mark_paid(current: Enrollment) -> Enrollment | None:
            if current.is_paid:
                return None
            return current.copy(
                payment_status=PaymentStatus.COMPLETED,
                payment_intent_id=payment_intent_id,
            )

        upgraded = await self.enrollments.update(enrollment.id, mark_paid)
        logger.info(
            "enrollment_payment_completed",
            enrollment_id=str(upgraded.id),
            user_id=str(user_id),
            course_id=str(course_id),
            payment_intent_id=upgraded.payment_intent_id,
        )
        return upgraded

    async def enroll(
        self, user_id: UUID, course_id: UUID, payment_intent_id: str | None = None
    ) -> Enrollment:
        """Free path without an intent, paid path with one.

        Raises:
            PaymentNotConfirmedError: Paid course and no intent given (unless
                the caller is already enrolled)
        """
        if payment_intent_id:
            return await self.create_paid_enrollment(user_id, course_id, payment_intent_id)

        course = await self._get_course(course_id)
        if course.is_free:
            return await self.create_free_enrollment(user_id, course_id)

        existing = await self.enrollments.find_by_user_course(user_id, course_id)
        if existing is not None and existing.is_paid:
            return existing
        raise PaymentNotConfirmedError(f"Course {course_id} requires payment")

    # ==========================================================================
    # Checkout / payment events
    # ==========================================================================

    async def begin_checkout(
        self, user_id: UUID, course_id: UUID, idempotency_key: str | None = None
    ) -> CheckoutResult:
        """Open a payment intent and record a pending enrollment.

        Already-paid enrollments come back with no intent; free courses are
        enrolled directly. Repeating a checkout while its intent is still
        open returns that same intent. A fresh intent is only opened after
        the previous one failed.

        Args:
            idempotency_key: Optional client key; namespaced per user and
                course before it reaches the gateway

        Raises:
            CourseNotFoundError: Unknown course
            ValidationError: The course is not published
        """
        course = await self._get_course(course_id)

        existing = await self.enrollments.find_by_user_course(user_id, course_id)
        if existing is not None and existing.is_paid:
            return CheckoutResult(enrollment=existing)

        self._require_published(course)

        if course.is_free:
            enrollment = await self.create_free_enrollment(user_id, course_id)
            return CheckoutResult(enrollment=enrollment)

        if existing is not None and existing.payment_intent_id:
            resumed = await self._resume_checkout(existing)
            if resumed is not None:
                return resumed

        intent = await self.gateway.create_intent(
            course.price,
            course.currency or self.settings.payment_currency,
            {"course_id": str(course_id), "user_id": str(user_id)},
            idempotency_key=self._checkout_key(user_id, course_id, existing, idempotency_key),
        )

        def bind_intent(current: Enrollment) -> Enrollment | None:
            if current.is_paid or current.payment_intent_id == intent.intent_id:
                return None
            return current.copy(
                payment_status=PaymentStatus.PENDING,
                payment_intent_id=intent.intent_id,
            )

        if existing is None:
            enrollment, created = await self.enrollments.get_or_create(
                create_pending_enrollment(user_id, course_id, intent.intent_id)
            )
            if not created:
                enrollment = await self.enrollments.update(enrollment.id, bind_intent)
        else:
            enrollment = await self.enrollments.update(existing.id, bind_intent)

        logger.info(
            "checkout_started",
            enrollment_id=str(enrollment.id),
            user_id=str(user_id),
            course_id=str(course_id),
            intent_id=intent.intent_id,
            amount=str(intent.amount),
        )
        return CheckoutResult(enrollment=enrollment, intent=intent)

    async def _resume_checkout(self, existing: Enrollment) -> CheckoutResult | None:
        """Reuse the intent already bound to ``existing`` while it can still be paid."""
        try:
            live = await self.gateway.confirm(existing.payment_intent_id)
        except PaymentNotConfirmedError:
            # Unknown to the gateway; a new intent replaces it
            return None

        if live.status == PaymentIntentStatus.PENDING:
            logger.info(
                "checkout_resumed",
                enrollment_id=str(existing.id),
                intent_id=live.intent_id,
            )
            return CheckoutResult(enrollment=existing, intent=live)

        if live.succeeded:
            enrollment = await self.create_paid_enrollment(
                existing.user_id, existing.course_id, live.intent_id
            )
            return CheckoutResult(enrollment=enrollment)

        return None

    def _checkout_key(
        self,
        user_id: UUID,
        course_id: UUID,
        existing: Enrollment | None,
        client_key: str | None,
    ) -> str:
        """Gateway idempotency key; stable until the bound intent fails."""
        key = f"checkout-{user_id}-{course_id}"
        if client_key:
            return f"{key}-{client_key}"
        if existing is not None and existing.payment_intent_id:
            return f"{key}-after-{existing.payment_intent_id}"
        return key

    async def handle_payment_event(
        self, event_type: str, intent: PaymentIntent
    ) -> Enrollment | None:
        """Apply a gateway webhook event.

        ``succeeded`` runs the paid-enrollment path (the gateway is asked
        again, so a forged event cannot grant access). ``failed`` marks a
        pending enrollment bound to the intent as failed; paid enrollments
        are never downgraded. Other event types are ignored.
        """
        if event_type == PaymentEventType.SUCCEEDED.value:
            user_id, course_id = self._purchase_from_metadata(intent)
            return await self.create_paid_enrollment(user_id, course_id, intent.intent_id)

        if event_type == PaymentEventType.FAILED.value:
            return await self._mark_payment_failed(intent.intent_id)

        logger.debug("payment_event_ignored", event_type=event_type)
        return None

    def _purchase_from_metadata(self, intent: PaymentIntent) -> tuple[UUID, UUID]:
        try:
            return UUID(intent.metadata["user_id"]), UUID(intent.metadata["course_id"])
        except (KeyError, ValueError) as e:
            msg = f"Payment {intent.intent_id} has no usable user/course metadata"
            raise ValidationError(msg) from e

    async def _mark_payment_failed(self, intent_id: str) -> Enrollment | None:
        enrollment = await self.enrollments.find_by_payment_intent(intent_id)
        if enrollment is None:
            logger.info("payment_failed_without_enrollment", intent_id=intent_id)
            return None

        def mark_failed(current: Enrollment) -> Enrollment | None:
            if (
                current.payment_status != PaymentStatus.PENDING
                or current.payment_intent_id != intent_id
            ):
                return None
            return current.copy(payment_status=PaymentStatus.FAILED)

        updated = await self.enrollments.update(enrollment.id, mark_failed)
        logger.info(
            "enrollment_payment_failed",
            enrollment_id=str(updated.id),
            intent_id=intent_id,
            payment_status=updated.payment_status.value,
        )
        return updated

    # ==========================================================================
    # Lesson completion
    # ==========================================================================

    async def mark_lesson_complete(self, enrollment_id: UUID, lesson_id: UUID) -> Enrollment:
        """Add a lesson to the completed set and recompute progress.

        Repeating the call changes nothing. The first update that reaches
        100% sets ``completed_at`` and fires the completion hook.

        Raises:
            EnrollmentNotFoundError: Unknown enrollment
            LessonNotInCourseError: Lesson belongs to another course
        """
        enrollment = await self.get_enrollment_by_id(enrollment_id)
        course = await self._get_course(enrollment.course_id)
        self._require_lesson(course, lesson_id)
        return await self._apply_completion(enrollment_id, course, lesson_id)

    async def complete_lesson(
        self, identity: Identity, enrollment_id: UUID, lesson_id: UUID
    ) -> Enrollment:
        """Mark a lesson complete on behalf of the enrollment's owner.

        The caller must own the enrollment and be entitled to the lesson.

        Raises:
            EnrollmentNotFoundError: Unknown enrollment, or not the caller's
            LessonNotInCourseError: Lesson belongs to another course
            AuthorizationError: Access to the lesson is denied
        """
        enrollment = await self.get_enrollment_by_id(enrollment_id)
        if enrollment.user_id != identity.user_id:
            raise EnrollmentNotFoundError(f"Enrollment {enrollment_id} not found")

        course = await self._get_course(enrollment.course_id)
        lesson = self._require_lesson(course, lesson_id)

        decision = decide(identity, course, lesson, enrollment)
        if not decision.allowed:
            logger.info(
                "lesson_completion_denied",
                enrollment_id=str(enrollment_id),
                lesson_id=str(lesson_id),
                reason=decision.reason.value,
            )
            raise AuthorizationError(decision.reason.value)

        return await self._apply_completion(enrollment_id, course, lesson_id)

    def _require_lesson(self, course: Course, lesson_id: UUID) -> Lesson:
        lesson = course.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotInCourseError(
                f"Lesson {lesson_id} is not part of course {course.id}"
            )
        return lesson

    async def _apply_completion(
        self, enrollment_id: UUID, course: Course, lesson_id: UUID
    ) -> Enrollment:
        now = datetime.now(UTC)
        reached_completion = False

        def complete(current: Enrollment) -> Enrollment | None:
            nonlocal reached_completion
            reached_completion = False

            completed = current.completed_lessons | {lesson_id}
            progress = compute_progress(current.copy(completed_lessons=completed), course)
            if completed == current.completed_lessons and progress == current.progress:
                return None

            changes = {
                "completed_lessons": completed,
                "progress": progress,
                "last_accessed_at": now,
            }
            if progress == 100 and current.completed_at is None:
                changes["completed_at"] = now
                reached_completion = True
            return current.copy(**changes)

        updated = await self.enrollments.update(enrollment_id, complete)
        logger.info(
            "lesson_marked_complete",
            enrollment_id=str(enrollment_id),
            lesson_id=str(lesson_id),
            progress=updated.progress,
        )

        if reached_completion:
            await self._notify_completed(updated, course)
        return updated

    async def _notify_completed(self, enrollment: Enrollment, course: Course) -> None:
        try:
            await self.completion_hook.course_completed(enrollment, course)
        except Exception as e:
            logger.error(
                "course_completed_hook_failed",
                enrollment_id=str(enrollment.id),
                error=str(e),
            )

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Canonical lookup by (user, course).

        Raises:
            EnrollmentNotFoundError: Not enrolled
        """
        enrollment = await self.enrollments.find_by_user_course(user_id, course_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(
                f"User {user_id} is not enrolled in course {course_id}"
            )
        return enrollment

    async def get_enrollment_by_id(self, enrollment_id: UUID) -> Enrollment:
        enrollment = await self.enrollments.get(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(f"Enrollment {enrollment_id} not found")
        return enrollment

    async def list_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """All enrollments of a user, newest first."""
        enrollments = await self.enrollments.list_by_user(user_id)
        return sorted(enrollments, key=lambda e: e.enrolled_at, reverse=True)
