"""Tests for CassandraEnrollmentRepository against a mocked session.

Covers:
- INSERT IF NOT EXISTS creation and lost races
- UPDATE IF version retries
- Payment intent claims
- Versioned writes of the per-course copy
"""

from collections.abc import Callable
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from cassandra.cluster import Session

from coursehub.core.errors import ConflictError, EnrollmentNotFoundError
from coursehub.enrollments.models import (
    Enrollment,
    PaymentStatus,
    create_free_enrollment,
    create_paid_enrollment,
)
from coursehub.enrollments.repository import CassandraEnrollmentRepository


def make_result(row=None, applied: bool = True) -> Mock:
    result = Mock()
    result.one.return_value = row
    result.was_applied = applied
    return result


def make_row(enrollment: Enrollment) -> SimpleNamespace:
    return SimpleNamespace(
        enrollment_id=enrollment.id,
        user_id=enrollment.user_id,
        course_id=enrollment.course_id,
        payment_status=enrollment.payment_status.value,
        payment_intent_id=enrollment.payment_intent_id,
        completed_lessons=set(enrollment.completed_lessons) or None,
        progress=enrollment.progress,
        enrolled_at=enrollment.enrolled_at.replace(tzinfo=None),
        completed_at=None,
        last_accessed_at=None,
        version=enrollment.version,
    )


def pointer(enrollment: Enrollment) -> SimpleNamespace:
    return SimpleNamespace(
        enrollment_id=enrollment.id,
        user_id=enrollment.user_id,
        course_id=enrollment.course_id,
    )


def script(responses: dict) -> Callable[..., Mock]:
    """Answer ``aexecute`` per prepared statement; the last answer repeats."""
    queues = {statement: list(results) for statement, results in responses.items()}

    def aexecute(statement, params=None):
        queue = queues.get(statement)
        if not queue:
            return make_result()
        return queue.pop(0) if len(queue) > 1 else queue[0]

    return aexecute


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda cql: Mock(name="prepared"))
    # cassandra-asyncio-driver sessions await queries through aexecute
    session.aexecute = AsyncMock(return_value=make_result())
    return session


@pytest.fixture
def repo(mock_session) -> CassandraEnrollmentRepository:
    return CassandraEnrollmentRepository(
        session=mock_session, keyspace="test_keyspace", max_attempts=3
    )


@pytest.fixture
def enrollment(student_id: UUID) -> Enrollment:
    return Enrollment(
        user_id=student_id,
        course_id=uuid4(),
        payment_status=PaymentStatus.COMPLETED,
        enrolled_at=datetime(2026, 3, 1, 9, 0, tzinfo=UTC),
    )


def executed(mock_session) -> list:
    return [call.args[0] for call in mock_session.aexecute.call_args_list]


class TestStatements:
    """Tests for statement preparation."""

    def test_statements_use_keyspace(self, mock_session, repo) -> None:
        """Every prepared statement targets the configured keyspace."""
        queries = [call.args[0] for call in mock_session.prepare.call_args_list]

        assert queries
        assert all("test_keyspace." in query for query in queries)
        assert any("IF NOT EXISTS" in query for query in queries)
        assert any("IF version = ?" in query for query in queries)
        assert any("USING TIMESTAMP ?" in query for query in queries)


class TestCassandraGetOrCreate:
    """Tests for conditional creation."""

    @pytest.mark.asyncio
    async def test_applied_insert_creates(
        self, mock_session, repo: CassandraEnrollmentRepository, student_id: UUID
    ) -> None:
        """Applied LWT returns the candidate and writes secondary rows."""
        candidate = create_paid_enrollment(student_id, uuid4(), "pi_1")
        mock_session.aexecute.side_effect = script(
            {repo._insert_if_not_exists: [make_result(applied=True)]}
        )

        stored, created = await repo.get_or_create(candidate)

        assert created is True
        assert stored.id == candidate.id
        statements = executed(mock_session)
        assert repo._insert_by_id in statements
        assert repo._upsert_by_course in statements
        assert repo._claim_intent in statements

    @pytest.mark.asyncio
    async def test_lost_race_returns_winner(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """Rejected LWT reads back the existing record."""
        candidate = create_free_enrollment(enrollment.user_id, enrollment.course_id)
        mock_session.aexecute.side_effect = script(
            {
                repo._insert_if_not_exists: [make_result(applied=False)],
                repo._get_by_pair: [make_result(make_row(enrollment))],
            }
        )

        stored, created = await repo.get_or_create(candidate)

        assert created is False
        assert stored.id == enrollment.id
        assert stored.enrolled_at.tzinfo is not None
        assert repo._upsert_by_course not in executed(mock_session)

    @pytest.mark.asyncio
    async def test_rejected_without_record_is_conflict(
        self, mock_session, repo: CassandraEnrollmentRepository, student_id: UUID
    ) -> None:
        """Rejected LWT with nothing to read back raises ConflictError."""
        mock_session.aexecute.side_effect = script(
            {repo._insert_if_not_exists: [make_result(applied=False)]}
        )

        with pytest.raises(ConflictError):
            await repo.get_or_create(create_free_enrollment(student_id, uuid4()))

    @pytest.mark.asyncio
    async def test_known_intent_short_circuits(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """An already claimed intent returns its enrollment without inserting."""
        paid = enrollment.copy(payment_intent_id="pi_1")
        mock_session.aexecute.side_effect = script(
            {
                repo._claim_intent: [make_result(applied=False)],
                repo._get_intent: [make_result(pointer(paid))],
                repo._get_by_pair: [make_result(make_row(paid))],
            }
        )

        stored, created = await repo.get_or_create(
            create_paid_enrollment(paid.user_id, paid.course_id, "pi_1")
        )

        assert created is False
        assert stored.id == paid.id
        assert repo._insert_if_not_exists not in executed(mock_session)


class TestCassandraUpdate:
    """Tests for versioned updates."""

    @pytest.mark.asyncio
    async def test_applied_update(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """Update is conditional on the read version."""
        mock_session.aexecute.side_effect = script(
            {
                repo._get_by_id: [make_result(pointer(enrollment))],
                repo._get_by_pair: [make_result(make_row(enrollment))],
                repo._update_if_version: [make_result(applied=True)],
            }
        )

        updated = await repo.update(enrollment.id, lambda e: e.copy(progress=50))

        assert updated.progress == 50
        assert updated.version == 2
        update_call = next(
            call
            for call in mock_session.aexecute.call_args_list
            if call.args[0] is repo._update_if_version
        )
        assert update_call.args[1][-1] == 1

    @pytest.mark.asyncio
    async def test_conflict_then_success(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """A lost version check re-reads and tries again."""
        newer = enrollment.copy(version=2)
        mock_session.aexecute.side_effect = script(
            {
                repo._get_by_id: [make_result(pointer(enrollment))],
                repo._get_by_pair: [
                    make_result(make_row(enrollment)),
                    make_result(make_row(newer)),
                ],
                repo._update_if_version: [
                    make_result(applied=False),
                    make_result(applied=True),
                ],
            }
        )

        updated = await repo.update(enrollment.id, lambda e: e.copy(progress=25))

        assert updated.version == 3
        assert executed(mock_session).count(repo._update_if_version) == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """Persistent conflicts raise ConflictError after max_attempts."""
        mock_session.aexecute.side_effect = script(
            {
                repo._get_by_id: [make_result(pointer(enrollment))],
                repo._get_by_pair: [make_result(make_row(enrollment))],
                repo._update_if_version: [make_result(applied=False)],
            }
        )

        with pytest.raises(ConflictError):
            await repo.update(enrollment.id, lambda e: e.copy(progress=25))

        assert executed(mock_session).count(repo._update_if_version) == 3

    @pytest.mark.asyncio
    async def test_noop_mutation_skips_write(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """No UPDATE is issued when nothing changes."""
        mock_session.aexecute.side_effect = script(
            {
                repo._get_by_id: [make_result(pointer(enrollment))],
                repo._get_by_pair: [make_result(make_row(enrollment))],
            }
        )

        result = await repo.update(enrollment.id, lambda e: None)

        assert result.version == enrollment.version
        assert repo._update_if_version not in executed(mock_session)

    @pytest.mark.asyncio
    async def test_unknown_enrollment(
        self, mock_session, repo: CassandraEnrollmentRepository
    ) -> None:
        """Missing pointer row raises EnrollmentNotFoundError."""
        mock_session.aexecute.side_effect = script({})

        with pytest.raises(EnrollmentNotFoundError):
            await repo.update(uuid4(), lambda e: e)


class TestCassandraReads:
    """Tests for lookups."""

    @pytest.mark.asyncio
    async def test_stale_pointer_is_ignored(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """Pointer left by a lost creation race resolves to None."""
        loser_id = uuid4()
        mock_session.aexecute.side_effect = script(
            {
                repo._get_by_id: [make_result(pointer(enrollment))],
                repo._get_by_pair: [make_result(make_row(enrollment))],
            }
        )

        assert await repo.get(loser_id) is None
        assert (await repo.get(enrollment.id)).id == enrollment.id

    @pytest.mark.asyncio
    async def test_list_by_course(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """Rows from the per-course table become entities."""
        mock_session.aexecute.side_effect = script(
            {repo._get_by_course: [[make_row(enrollment)]]}
        )

        listed = await repo.list_by_course(enrollment.course_id)

        assert [e.id for e in listed] == [enrollment.id]


class TestIntentClaims:
    """Tests for payment intent binding."""

    @pytest.mark.asyncio
    async def test_intent_claimed_for_other_purchase(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """A lost claim returns the record the intent is bound to."""
        other = enrollment.copy(payment_intent_id="pi_shared")
        mock_session.aexecute.side_effect = script(
            {
                repo._claim_intent: [make_result(applied=False)],
                repo._get_intent: [make_result(pointer(other))],
                repo._get_by_pair: [make_result(make_row(other))],
            }
        )

        stored, created = await repo.get_or_create(
            create_paid_enrollment(uuid4(), uuid4(), "pi_shared")
        )

        assert created is False
        assert stored.id == other.id
        assert repo._insert_if_not_exists not in executed(mock_session)

    @pytest.mark.asyncio
    async def test_claim_in_flight_for_other_purchase_conflicts(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """Two purchases racing on one intent never both get a record."""
        mock_session.aexecute.side_effect = script(
            {
                repo._claim_intent: [make_result(applied=False)],
                repo._get_intent: [make_result(pointer(enrollment))],
                repo._get_by_pair: [make_result(None)],
            }
        )

        with pytest.raises(ConflictError):
            await repo.get_or_create(create_paid_enrollment(uuid4(), uuid4(), "pi_shared"))

        assert repo._insert_if_not_exists not in executed(mock_session)

    @pytest.mark.asyncio
    async def test_claim_in_flight_for_same_purchase_inserts(
        self, mock_session, repo: CassandraEnrollmentRepository, student_id: UUID
    ) -> None:
        """The same purchase racing itself is settled by the (user, course) insert."""
        candidate = create_paid_enrollment(student_id, uuid4(), "pi_same")
        mock_session.aexecute.side_effect = script(
            {
                repo._claim_intent: [make_result(applied=False)],
                repo._get_intent: [make_result(pointer(candidate))],
                repo._get_by_pair: [make_result(None)],
                repo._insert_if_not_exists: [make_result(applied=True)],
            }
        )

        stored, created = await repo.get_or_create(candidate)

        assert created is True
        assert stored.id == candidate.id

    @pytest.mark.asyncio
    async def test_lost_insert_releases_claim(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """An intent claimed for a record that lost the insert is given back."""
        pending = enrollment.copy(
            payment_status=PaymentStatus.PENDING, payment_intent_id="pi_old"
        )
        candidate = create_paid_enrollment(pending.user_id, pending.course_id, "pi_new")
        mock_session.aexecute.side_effect = script(
            {
                repo._insert_if_not_exists: [make_result(applied=False)],
                repo._get_by_pair: [make_result(make_row(pending))],
            }
        )

        stored, created = await repo.get_or_create(candidate)

        assert created is False
        assert stored.id == pending.id
        release = next(
            call
            for call in mock_session.aexecute.call_args_list
            if call.args[0] is repo._release_intent
        )
        assert release.args[1] == ["pi_new", candidate.id]

    @pytest.mark.asyncio
    async def test_update_claims_new_intent(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """Binding a new intent on update claims it for this enrollment."""
        mock_session.aexecute.side_effect = script(
            {
                repo._get_by_id: [make_result(pointer(enrollment))],
                repo._get_by_pair: [make_result(make_row(enrollment))],
                repo._update_if_version: [make_result(applied=True)],
            }
        )

        await repo.update(enrollment.id, lambda e: e.copy(payment_intent_id="pi_next"))

        claim = next(
            call
            for call in mock_session.aexecute.call_args_list
            if call.args[0] is repo._claim_intent
        )
        assert claim.args[1] == [
            "pi_next",
            enrollment.user_id,
            enrollment.course_id,
            enrollment.id,
        ]


class TestCourseCopy:
    """Tests for the per-course copy used by analytics."""

    @pytest.mark.asyncio
    async def test_late_older_write_does_not_win(
        self,
        mock_session,
        repo: CassandraEnrollmentRepository,
        enrollment: Enrollment,
    ) -> None:
        """Copies arriving out of order still leave the newest version."""
        mock_session.aexecute.side_effect = script(
            {
                repo._get_by_id: [make_result(pointer(enrollment))],
                repo._get_by_pair: [
                    make_result(make_row(enrollment)),
                    make_result(make_row(enrollment.copy(version=2, progress=25))),
                ],
                repo._update_if_version: [make_result(applied=True)],
            }
        )

        await repo.update(enrollment.id, lambda e: e.copy(progress=25))
        await repo.update(enrollment.id, lambda e: e.copy(progress=50))

        writes = [
            call.args[1]
            for call in mock_session.aexecute.call_args_list
            if call.args[0] is repo._upsert_by_course
        ]
        assert [w[-1] for w in writes] == [2, 3]

        # Cassandra keeps the cell with the highest write timestamp
        cells: dict[str, tuple[int, int]] = {}
        for params in reversed(writes):
            progress, timestamp = params[6], params[-1]
            if "progress" not in cells or timestamp > cells["progress"][1]:
                cells["progress"] = (progress, timestamp)

        assert cells["progress"] == (50, 3)
