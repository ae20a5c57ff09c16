"""Tests for the Cassandra learning store against a mocked session."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from cassandra.cluster import NoHostAvailable, Session

from learnpath.notifications.models import Notification, NotificationLevel
from learnpath.progress.models import Enrollment
from learnpath.quizzes.models import QuizAttempt
from learnpath.reviews.models import Review
from learnpath.storage import DuplicateRecordError, StorageError
from learnpath.storage.cassandra import CassandraStore


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda cql: Mock(cql=cql))
    # Make aexecute awaitable (cassandra-asyncio-driver)
    session.aexecute = AsyncMock(return_value=Mock())
    return session


@pytest.fixture
def cassandra_store(mock_session) -> CassandraStore:
    return CassandraStore(mock_session, "test_keyspace")


@pytest.fixture
def student_id() -> UUID:
    return uuid4()


def lwt_result(applied: bool) -> Mock:
    result = Mock()
    result.was_applied = applied
    return result


class TestStatements:
    """Tests for statement preparation."""

    def test_statements_use_keyspace(self, mock_session) -> None:
        CassandraStore(mock_session, "test_keyspace")

        prepared = [call.args[0] for call in mock_session.prepare.call_args_list]
        assert prepared
        assert all("test_keyspace." in cql for cql in prepared)

    def test_unique_inserts_are_lightweight_transactions(self, mock_session) -> None:
        CassandraStore(mock_session, "test_keyspace")

        prepared = [call.args[0] for call in mock_session.prepare.call_args_list]
        completion_insert = next(
            c for c in prepared if "INSERT INTO test_keyspace.lesson_completions" in c
        )
        enrollment_insert = next(
            c for c in prepared if "INSERT INTO test_keyspace.enrollments\n" in c
        )
        assert "IF NOT EXISTS" in completion_insert
        assert "IF NOT EXISTS" in enrollment_insert


class TestCompletions:
    """Tests for completion writes."""

    @pytest.mark.asyncio
    async def test_insert_completion_applied(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        mock_session.aexecute = AsyncMock(return_value=lwt_result(True))
        lesson_id = uuid4()
        now = datetime.now(UTC)

        await cassandra_store.insert_completion(student_id, lesson_id, now)

        args = mock_session.aexecute.call_args.args
        assert args[1] == [student_id, lesson_id, now]

    @pytest.mark.asyncio
    async def test_insert_completion_not_applied_is_duplicate(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        """An existing row makes the LWT report not applied."""
        mock_session.aexecute = AsyncMock(return_value=lwt_result(False))

        with pytest.raises(DuplicateRecordError):
            await cassandra_store.insert_completion(
                student_id, uuid4(), datetime.now(UTC)
            )

    @pytest.mark.asyncio
    async def test_list_completions_from_rows(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        lesson_id = uuid4()
        row = Mock(
            student_id=student_id,
            lesson_id=lesson_id,
            completed_at=datetime(2024, 1, 15, 10, 30),
        )
        mock_session.aexecute = AsyncMock(return_value=[row])

        [completion] = await cassandra_store.list_completions(student_id)

        assert completion.lesson_id == lesson_id
        # Naive driver timestamps come back as UTC
        assert completion.completed_at.tzinfo == UTC


class TestEnrollments:
    """Tests for enrollment writes."""

    @pytest.mark.asyncio
    async def test_insert_enrollment_writes_lookup(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        mock_session.aexecute = AsyncMock(return_value=lwt_result(True))
        enrollment = Enrollment(student_id=student_id, course_id=uuid4())

        await cassandra_store.insert_enrollment(enrollment)

        assert mock_session.aexecute.await_count == 2
        lookup_params = mock_session.aexecute.call_args_list[1].args[1]
        assert lookup_params == [enrollment.id, student_id, enrollment.course_id]

    @pytest.mark.asyncio
    async def test_insert_enrollment_duplicate(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        mock_session.aexecute = AsyncMock(return_value=lwt_result(False))

        with pytest.raises(DuplicateRecordError):
            await cassandra_store.insert_enrollment(
                Enrollment(student_id=student_id, course_id=uuid4())
            )
        assert mock_session.aexecute.await_count == 1

    @pytest.mark.asyncio
    async def test_update_progress_unknown_enrollment(
        self, cassandra_store: CassandraStore, mock_session
    ) -> None:
        result = Mock()
        result.one = Mock(return_value=None)
        mock_session.aexecute = AsyncMock(return_value=result)

        with pytest.raises(StorageError) as exc_info:
            await cassandra_store.update_enrollment_progress(uuid4(), 50)
        assert exc_info.value.code == "not_found"

    @pytest.mark.asyncio
    async def test_update_progress_uses_primary_key(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        course_id = uuid4()
        key_result = Mock()
        key_result.one = Mock(
            return_value=Mock(student_id=student_id, course_id=course_id)
        )
        mock_session.aexecute = AsyncMock(side_effect=[key_result, Mock()])

        await cassandra_store.update_enrollment_progress(uuid4(), 75)

        params = mock_session.aexecute.call_args_list[1].args[1]
        assert params[0] == 75
        assert params[2:] == [student_id, course_id]


class TestReads:
    """Tests for reads and error translation."""

    @pytest.mark.asyncio
    async def test_missing_course_is_none(
        self, cassandra_store: CassandraStore, mock_session
    ) -> None:
        result = Mock()
        result.one = Mock(return_value=None)
        mock_session.aexecute = AsyncMock(return_value=result)

        assert await cassandra_store.get_course(uuid4()) is None

    @pytest.mark.asyncio
    async def test_driver_failure_becomes_storage_error(
        self, cassandra_store: CassandraStore, mock_session
    ) -> None:
        mock_session.aexecute = AsyncMock(
            side_effect=NoHostAvailable("Unable to connect", {})
        )

        with pytest.raises(StorageError):
            await cassandra_store.list_lessons(uuid4())

    @pytest.mark.asyncio
    async def test_attempt_answers_keyed_by_text(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        """MAP<TEXT, TEXT> column gets string question ids."""
        question_id = uuid4()
        attempt = QuizAttempt(
            quiz_id=uuid4(),
            student_id=student_id,
            score=100,
            answers={question_id: "A"},
            passed=True,
        )

        await cassandra_store.insert_quiz_attempt(attempt)

        params = mock_session.aexecute.call_args.args[1]
        assert params[5] == {str(question_id): "A"}


class TestReviews:
    """Tests for review writes and id lookups."""

    @pytest.mark.asyncio
    async def test_insert_review_writes_lookup(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        mock_session.aexecute = AsyncMock(return_value=lwt_result(True))
        review = Review(
            course_id=uuid4(), student_id=student_id, rating=4, comment="Clear"
        )

        await cassandra_store.insert_review(review)

        insert, lookup = mock_session.aexecute.call_args_list
        assert "IF NOT EXISTS" in insert.args[0].cql
        assert insert.args[1][:2] == [review.course_id, student_id]
        assert lookup.args[1] == [review.id, review.course_id, student_id]

    @pytest.mark.asyncio
    async def test_insert_review_duplicate(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        """Second review of the same course skips the lookup row."""
        mock_session.aexecute = AsyncMock(return_value=lwt_result(False))

        with pytest.raises(DuplicateRecordError):
            await cassandra_store.insert_review(
                Review(course_id=uuid4(), student_id=student_id, rating=5, comment="x")
            )
        assert mock_session.aexecute.await_count == 1

    @pytest.mark.asyncio
    async def test_get_review_resolves_primary_key(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        course_id = uuid4()
        review_id = uuid4()
        key_result = Mock()
        key_result.one = Mock(
            return_value=Mock(course_id=course_id, student_id=student_id)
        )
        row_result = Mock()
        row_result.one = Mock(
            return_value=Mock(
                id=review_id,
                course_id=course_id,
                student_id=student_id,
                rating=3,
                comment="Too long",
                created_at=datetime(2024, 1, 15, 10, 30),
                updated_at=None,
            )
        )
        mock_session.aexecute = AsyncMock(side_effect=[key_result, row_result])

        review = await cassandra_store.get_review(review_id)

        assert review is not None
        assert review.rating == 3
        assert review.created_at.tzinfo == UTC
        assert mock_session.aexecute.call_args.args[1] == [course_id, student_id]

    @pytest.mark.asyncio
    async def test_get_unknown_review_is_none(
        self, cassandra_store: CassandraStore, mock_session
    ) -> None:
        result = Mock()
        result.one = Mock(return_value=None)
        mock_session.aexecute = AsyncMock(return_value=result)

        assert await cassandra_store.get_review(uuid4()) is None
        assert mock_session.aexecute.await_count == 1

    @pytest.mark.asyncio
    async def test_delete_review_removes_lookup(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        review = Review(course_id=uuid4(), student_id=student_id, rating=2, comment="x")

        await cassandra_store.delete_review(review)

        by_key, by_id = mock_session.aexecute.call_args_list
        assert by_key.args[1] == [review.course_id, student_id]
        assert by_id.args[1] == [review.id]


class TestNotifications:
    """Tests for the notifications table."""

    @pytest.mark.asyncio
    async def test_insert_uses_ttl(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        notification = Notification(
            user_id=student_id,
            level=NotificationLevel.ERROR,
            message="Failed to save quiz attempt",
            code="storage_error",
        )

        await cassandra_store.insert_notification(notification, 3600)

        statement, params = mock_session.aexecute.call_args.args
        assert "USING TTL ?" in statement.cql
        assert params == [
            student_id,
            notification.created_at,
            notification.id,
            "error",
            "Failed to save quiz attempt",
            "storage_error",
            3600,
        ]

    @pytest.mark.asyncio
    async def test_list_returns_oldest_first(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        """Rows come back newest first and are reversed."""
        rows = [
            Mock(
                user_id=student_id,
                notification_id=uuid4(),
                level=level,
                message=message,
                code=None,
                created_at=datetime(2024, 1, 15, 10, minute),
            )
            for level, message, minute in (
                ("success", "Lesson marked as complete", 31),
                ("error", "Failed to load quiz", 30),
            )
        ]
        mock_session.aexecute = AsyncMock(return_value=rows)

        first, second = await cassandra_store.list_notifications(student_id, 50)

        assert first.message == "Failed to load quiz"
        assert second.level == NotificationLevel.SUCCESS
        assert first.created_at.tzinfo == UTC
        assert mock_session.aexecute.call_args.args[1] == [student_id, 50]

    @pytest.mark.asyncio
    async def test_delete_is_a_range_up_to_newest(
        self, cassandra_store: CassandraStore, mock_session, student_id: UUID
    ) -> None:
        up_to = datetime.now(UTC)

        await cassandra_store.delete_notifications(student_id, up_to)

        statement, params = mock_session.aexecute.call_args.args
        assert "created_at <= ?" in statement.cql
        assert params == [student_id, up_to]
