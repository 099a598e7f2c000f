# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Enrollment storage port and adapters.

Both adapters guarantee:
- at most one enrollment per (user, course), and per payment intent
- ``update`` applies its mutation atomically against the latest version
"""

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from coursehub.core.errors import ConflictError, EnrollmentNotFoundError
from coursehub.core.logging import get_logger

from .models import Enrollment


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)

# Receives a private copy of the current record; returns the new record, or
# None when nothing needs to change.
Mutation = Callable[[Enrollment], Enrollment | None]


class EnrollmentRepository(Protocol):
    """Storage port for enrollments."""

    async def get(self, enrollment_id: UUID) -> Enrollment | None: ...

    async def find_by_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None: ...

    async def find_by_payment_intent(self, payment_intent_id: str) -> Enrollment | None: ...

    async def get_or_create(self, candidate: Enrollment) -> tuple[Enrollment, bool]:
        """Insert ``candidate`` unless a record already exists.

        Returns the stored record and whether it was created by this call.
        """
        ...

    async def update(self, enrollment_id: UUID, mutate: Mutation) -> Enrollment:
        """Apply ``mutate`` atomically and return the stored result.

        Raises:
            EnrollmentNotFoundError: Unknown enrollment id
            ConflictError: Optimistic retries exhausted
        """
        ...

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]: ...

    async def list_by_user(self, user_id: UUID) -> list[Enrollment]: ...


# ==============================================================================
# In-memory adapter
# ==============================================================================


class InMemoryEnrollmentRepository:
    """Process-local repository.

    One lock guards creation (the uniqueness indexes); each enrollment has its
    own lock for read-modify-write updates. Records are copied on the way in
    and out so callers never share state with the store.
    """

    def __init__(self):
        self._by_id: dict[UUID, Enrollment] = {}
        self._by_pair: dict[tuple[UUID, UUID], UUID] = {}
        self._by_intent: dict[str, UUID] = {}
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._create_lock = asyncio.Lock()

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        enrollment = self._by_id.get(enrollment_id)
        return enrollment.copy() if enrollment else None

    async def find_by_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        enrollment_id = self._by_pair.get((user_id, course_id))
        return await self.get(enrollment_id) if enrollment_id else None

    async def find_by_payment_intent(self, payment_intent_id: str) -> Enrollment | None:
        enrollment_id = self._by_intent.get(payment_intent_id)
        return await self.get(enrollment_id) if enrollment_id else None

    async def get_or_create(self, candidate: Enrollment) -> tuple[Enrollment, bool]:
        async with self._create_lock:
            if candidate.payment_intent_id:
                existing_id = self._by_intent.get(candidate.payment_intent_id)
                if existing_id:
                    return self._by_id[existing_id].copy(), False

            existing_id = self._by_pair.get((candidate.user_id, candidate.course_id))
            if existing_id:
                return self._by_id[existing_id].copy(), False

            stored = candidate.copy()
            self._by_id[stored.id] = stored
            self._by_pair[(stored.user_id, stored.course_id)] = stored.id
            if stored.payment_intent_id:
                self._by_intent[stored.payment_intent_id] = stored.id
            self._locks[stored.id] = asyncio.Lock()
            return stored.copy(), True

    async def update(self, enrollment_id: UUID, mutate: Mutation) -> Enrollment:
        lock = self._locks.get(enrollment_id)
        if lock is None:
            raise EnrollmentNotFoundError(f"Enrollment {enrollment_id} not found")

        async with lock:
            current = self._by_id[enrollment_id]
            changed = mutate(current.copy())
            if changed is None:
                return current.copy()

            stored = changed.copy(version=current.version + 1)
            self._by_id[enrollment_id] = stored
            if stored.payment_intent_id:
                self._by_intent[stored.payment_intent_id] = enrollment_id
            return stored.copy()

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        return [e.copy() for e in self._by_id.values() if e.course_id == course_id]

    async def list_by_user(self, user_id: UUID) -> list[Enrollment]:
        return [e.copy() for e in self._by_id.values() if e.user_id == user_id]


# ==============================================================================
# Cassandra adapter
# ==============================================================================


class CassandraEnrollmentRepository:
    """Repository backed by Cassandra lightweight transactions.

    Creation is ``INSERT ... IF NOT EXISTS`` on the (user, course) row;
    updates are ``UPDATE ... IF version = ?`` with bounded retries. A payment
    intent is claimed in ``enrollment_payment_intents`` with its own
    ``IF NOT EXISTS`` before any record carrying it is written.

    The ``enrollments_by_course`` copy is written with the record version as
    its write timestamp, so a delayed write of an older version never
    replaces a newer one.
    """

    def __init__(self, session: "Session", keyspace: str, max_attempts: int = 5):
        self.session = session
        self.keyspace = keyspace
        self.max_attempts = max_attempts
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_if_not_exists = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (user_id, course_id, enrollment_id, payment_status, payment_intent_id,
             completed_lessons, progress, enrolled_at, completed_at,
             last_accessed_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_if_version = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET payment_status = ?, payment_intent_id = ?, completed_lessons = ?,
                progress = ?, completed_at = ?, last_accessed_at = ?, version = ?
            WHERE user_id = ? AND course_id = ?
            IF version = ?
        """)

        self._get_by_pair = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE user_id = ? AND course_id = ?
        """)

        self._get_by_user = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE user_id = ?
        """)

        self._insert_by_id = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_id
            (enrollment_id, user_id, course_id)
            VALUES (?, ?, ?)
        """)

        self._get_by_id = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_id
            WHERE enrollment_id = ?
        """)

        self._upsert_by_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_course
            (course_id, user_id, enrollment_id, payment_status, payment_intent_id,
             completed_lessons, progress, enrolled_at, completed_at,
             last_accessed_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            USING TIMESTAMP ?
        """)

        self._get_by_course = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_course
            WHERE course_id = ?
        """)

        self._claim_intent = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollment_payment_intents
            (payment_intent_id, user_id, course_id, enrollment_id)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._release_intent = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.enrollment_payment_intents
            WHERE payment_intent_id = ?
            IF enrollment_id = ?
        """)

        self._get_intent = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollment_payment_intents
            WHERE payment_intent_id = ?
        """)

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        result = await self.session.aexecute(self._get_by_id, [enrollment_id])
        pointer = result.one()
        if not pointer:
            return None
        enrollment = await self.find_by_user_course(pointer.user_id, pointer.course_id)
        # Pointer rows left by a creation race that lost have no matching record
        if enrollment is None or enrollment.id != enrollment_id:
            return None
        return enrollment

    async def find_by_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        result = await self.session.aexecute(self._get_by_pair, [user_id, course_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def find_by_payment_intent(self, payment_intent_id: str) -> Enrollment | None:
        claim = await self._intent_claim(payment_intent_id)
        if not claim:
            return None
        return await self.find_by_user_course(claim.user_id, claim.course_id)

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        rows = await self.session.aexecute(self._get_by_course, [course_id])
        return [Enrollment.from_row(row) for row in rows]

    async def list_by_user(self, user_id: UUID) -> list[Enrollment]:
        rows = await self.session.aexecute(self._get_by_user, [user_id])
        return [Enrollment.from_row(row) for row in rows]

    async def _intent_claim(self, payment_intent_id: str):
        result = await self.session.aexecute(self._get_intent, [payment_intent_id])
        return result.one()

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def get_or_create(self, candidate: Enrollment) -> tuple[Enrollment, bool]:
        intent_id = candidate.payment_intent_id
        if intent_id and not await self._claim(candidate):
            existing = await self.find_by_payment_intent(intent_id)
            if existing is not None:
                return existing, False

            claim = await self._intent_claim(intent_id)
            same_pair = claim is not None and (claim.user_id, claim.course_id) == (
                candidate.user_id,
                candidate.course_id,
            )
            if not same_pair:
                msg = f"Payment intent {intent_id} is bound to another enrollment"
                raise ConflictError(msg)
            # Same purchase still being written by another caller: the
            # (user, course) insert below decides which record stands

        await self.session.aexecute(
            self._insert_by_id,
            [candidate.id, candidate.user_id, candidate.course_id],
        )

        result = await self.session.aexecute(
            self._insert_if_not_exists,
            [
                candidate.user_id,
                candidate.course_id,
                candidate.id,
                candidate.payment_status.value,
                candidate.payment_intent_id,
                set(candidate.completed_lessons),
                candidate.progress,
                candidate.enrolled_at,
                candidate.completed_at,
                candidate.last_accessed_at,
                candidate.version,
            ],
        )

        if not result.was_applied:
            existing = await self.find_by_user_course(
                candidate.user_id, candidate.course_id
            )
            if existing is None:
                msg = "Enrollment insert rejected but no existing record found"
                raise ConflictError(msg)
            if intent_id and existing.payment_intent_id != intent_id:
                await self.session.aexecute(self._release_intent, [intent_id, candidate.id])
            logger.debug(
                "enrollment_already_exists",
                enrollment_id=str(existing.id),
                user_id=str(candidate.user_id),
                course_id=str(candidate.course_id),
            )
            return existing, False

        await self._write_course_copy(candidate)
        return candidate, True

    async def update(self, enrollment_id: UUID, mutate: Mutation) -> Enrollment:
        for attempt in range(1, self.max_attempts + 1):
            current = await self.get(enrollment_id)
            if current is None:
                raise EnrollmentNotFoundError(f"Enrollment {enrollment_id} not found")

            changed = mutate(current.copy())
            if changed is None:
                return current

            new_version = current.version + 1
            result = await self.session.aexecute(
                self._update_if_version,
                [
                    changed.payment_status.value,
                    changed.payment_intent_id,
                    set(changed.completed_lessons),
                    changed.progress,
                    changed.completed_at,
                    changed.last_accessed_at,
                    new_version,
                    current.user_id,
                    current.course_id,
                    current.version,
                ],
            )

            if result.was_applied:
                stored = changed.copy(version=new_version)
                await self._write_course_copy(stored)
                if (
                    stored.payment_intent_id
                    and stored.payment_intent_id != current.payment_intent_id
                    and not await self._claim(stored)
                ):
                    logger.warning(
                        "payment_intent_already_claimed",
                        enrollment_id=str(stored.id),
                        payment_intent_id=stored.payment_intent_id,
                    )
                return stored

            logger.info(
                "enrollment_update_conflict",
                enrollment_id=str(enrollment_id),
                attempt=attempt,
                expected_version=current.version,
            )

        logger.warning(
            "enrollment_update_exhausted",
            enrollment_id=str(enrollment_id),
            attempts=self.max_attempts,
        )
        msg = f"Enrollment {enrollment_id} changed concurrently; retries exhausted"
        raise ConflictError(msg)

    async def _claim(self, enrollment: Enrollment) -> bool:
        """Bind the enrollment's payment intent; False when already taken."""
        result = await self.session.aexecute(
            self._claim_intent,
            [
                enrollment.payment_intent_id,
                enrollment.user_id,
                enrollment.course_id,
                enrollment.id,
            ],
        )
        return result.was_applied

    async def _write_course_copy(self, enrollment: Enrollment) -> None:
        await self.session.aexecute(
            self._upsert_by_course,
            [
                enrollment.course_id,
                enrollment.user_id,
                enrollment.id,
                enrollment.payment_status.value,
                enrollment.payment_intent_id,
                set(enrollment.completed_lessons),
                enrollment.progress,
                enrollment.enrolled_at,
                enrollment.completed_at,
                enrollment.last_accessed_at,
                enrollment.version,
                enrollment.version,
            ],
        )
