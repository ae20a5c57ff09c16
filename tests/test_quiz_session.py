"""Tests for the timed quiz session.

Sessions are built with ``auto_tick=False`` so the countdown only moves on
explicit ``tick()`` calls.
"""

import asyncio
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest
from conftest import seed_course, seed_quiz

from learnpath.auth.context import AuthRequiredError, StudentContext
from learnpath.courses.models import LessonType, QuizQuestion
from learnpath.notifications.models import NotificationLevel
from learnpath.notifications.service import NotificationCenter
from learnpath.quizzes.models import QuizOutcome, QuizSessionState
from learnpath.quizzes.service import QuizSessionManager
from learnpath.quizzes.session import (
    InvalidOptionError,
    NoSelectionError,
    QuizSession,
    QuizStateError,
    SessionNotFoundError,
)
from learnpath.storage import InMemoryStore, StorageError


async def quiz_lesson(store: InMemoryStore) -> UUID:
    _, [lesson] = await seed_course(store, [LessonType.QUIZ])
    return lesson.id


def new_session(
    store: InMemoryStore,
    notifications: NotificationCenter,
    ctx: StudentContext,
    lesson_id: UUID,
    on_finished=None,
) -> QuizSession:
    return QuizSession(
        store, notifications, ctx, lesson_id, auto_tick=False, on_finished=on_finished
    )


async def answer_all(session: QuizSession, answers: list[str]) -> None:
    for option in answers:
        await session.select_answer(option)
        await session.advance()


class TestLoad:
    """Tests for load."""

    @pytest.mark.asyncio
    async def test_load_starts_first_question(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        _, questions = await seed_quiz(store, lesson_id, 3, time_limit_minutes=2)
        session = new_session(store, notifications, student, lesson_id)

        state = await session.load()

        assert state == QuizSessionState.IN_PROGRESS
        assert session.current_question.id == questions[0].id
        assert session.time_remaining == 120
        assert session.pending_selection is None
        await session.close()

    @pytest.mark.asyncio
    async def test_untimed_quiz_has_no_countdown(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 2)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()

        assert session.time_remaining is None
        assert await session.tick() == QuizSessionState.IN_PROGRESS
        await session.close()

    @pytest.mark.asyncio
    async def test_lesson_without_quiz_is_unavailable(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        session = new_session(store, notifications, student, lesson_id)

        assert await session.load() == QuizSessionState.UNAVAILABLE
        assert session.current_question is None
        await session.close()

    @pytest.mark.asyncio
    async def test_quiz_without_questions_is_unavailable(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        """No scoring is possible with zero questions."""
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 0)
        session = new_session(store, notifications, student, lesson_id)

        assert await session.load() == QuizSessionState.UNAVAILABLE
        with pytest.raises(QuizStateError):
            await session.advance()
        await session.close()

    @pytest.mark.asyncio
    async def test_load_failure_is_unavailable_and_notifies(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        store.get_quiz_for_lesson = AsyncMock(side_effect=StorageError("down"))
        session = new_session(store, notifications, student, lesson_id)

        assert await session.load() == QuizSessionState.UNAVAILABLE
        [notification] = await notifications.drain(student.user_id)
        assert notification.level == NotificationLevel.ERROR
        await session.close()

    def test_requires_context(
        self, store: InMemoryStore, notifications: NotificationCenter
    ) -> None:
        with pytest.raises(AuthRequiredError):
            QuizSession(store, notifications, None, uuid4())


class TestAnswering:
    """Tests for select_answer and advance."""

    @pytest.mark.asyncio
    async def test_advance_without_selection_is_rejected(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        """No selection: error and the session stays on the same question."""
        lesson_id = await quiz_lesson(store)
        _, questions = await seed_quiz(store, lesson_id, 3)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()

        with pytest.raises(NoSelectionError) as exc_info:
            await session.advance()

        assert exc_info.value.message == "Please select an answer"
        assert session.current_question.id == questions[0].id
        assert session.state == QuizSessionState.IN_PROGRESS
        await session.close()

    @pytest.mark.asyncio
    async def test_unknown_option_is_rejected(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 2)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()

        with pytest.raises(InvalidOptionError):
            await session.select_answer("E")
        # Matching is case-sensitive
        with pytest.raises(InvalidOptionError):
            await session.select_answer("a")
        assert session.pending_selection is None
        await session.close()

    @pytest.mark.asyncio
    async def test_reselect_overwrites_pending(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        _, questions = await seed_quiz(store, lesson_id, 2)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()

        await session.select_answer("B")
        await session.select_answer("A")
        await session.advance()

        assert session.answers == {questions[0].id: "A"}
        assert session.pending_selection is None
        assert session.current_index == 1
        await session.close()


class TestScoring:
    """Tests for the score computed after the last question."""

    @pytest.mark.asyncio
    async def test_seven_of_ten_passes_at_70(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        quiz, _ = await seed_quiz(store, lesson_id, 10, passing_score=70)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()

        await answer_all(session, ["A"] * 7 + ["B"] * 3)

        assert session.state == QuizSessionState.RESULTS
        outcome = session.outcome
        assert outcome.score == 70
        assert outcome.passed is True
        assert outcome.correct_count == 7
        assert outcome.timed_out is False
        [attempt] = await store.list_quiz_attempts(student.user_id, quiz.id)
        assert attempt.id == outcome.attempt_id
        assert attempt.score == 70
        assert attempt.passed is True
        await session.close()

    @pytest.mark.asyncio
    async def test_six_of_ten_fails_at_60(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 10, passing_score=70)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()

        await answer_all(session, ["A"] * 6 + ["C"] * 4)

        assert session.outcome.score == 60
        assert session.outcome.passed is False
        await session.close()

    @pytest.mark.asyncio
    async def test_score_ignores_option_order(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        """The answer text is compared, not its position."""
        lesson_id = await quiz_lesson(store)
        quiz, _ = await seed_quiz(store, lesson_id, 0)
        for index, options in enumerate([["A", "B", "C"], ["C", "B", "A"]]):
            await store.save_question(
                QuizQuestion(
                    quiz_id=quiz.id,
                    question=f"Q{index}",
                    options=options,
                    correct_answer="A",
                    order_index=index,
                )
            )
        session = new_session(store, notifications, student, lesson_id)
        await session.load()

        await answer_all(session, ["A", "A"])

        assert session.outcome.score == 100
        assert all(r.is_correct for r in session.outcome.results)
        await session.close()

    @pytest.mark.asyncio
    async def test_results_carry_explanations(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        quiz, _ = await seed_quiz(store, lesson_id, 0)
        await store.save_question(
            QuizQuestion(
                quiz_id=quiz.id,
                question="Max daily dose?",
                options=["1g", "4g"],
                correct_answer="4g",
                explanation="Adults: 4g per day",
            )
        )
        session = new_session(store, notifications, student, lesson_id)
        await session.load()

        await answer_all(session, ["1g"])

        [result] = session.outcome.results
        assert result.student_answer == "1g"
        assert result.correct_answer == "4g"
        assert result.is_correct is False
        assert result.explanation == "Adults: 4g per day"
        await session.close()

    @pytest.mark.asyncio
    async def test_success_notification_shows_score(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 4)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()

        await answer_all(session, ["A", "A", "A", "B"])

        [notification] = await notifications.drain(student.user_id)
        assert notification.message == "Quiz submitted! Score: 75%"
        await session.close()

    @pytest.mark.asyncio
    async def test_persist_failure_still_shows_results(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        """Results are shown without an attempt id and the student is told."""
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 2)
        store.insert_quiz_attempt = AsyncMock(side_effect=StorageError("down"))
        session = new_session(store, notifications, student, lesson_id)
        await session.load()

        await answer_all(session, ["A", "A"])

        assert session.state == QuizSessionState.RESULTS
        assert session.outcome.score == 100
        assert session.outcome.attempt_id is None
        assert session.outcome.persisted is False
        [notification] = await notifications.drain(student.user_id)
        assert notification.level == NotificationLevel.ERROR
        await session.close()

    @pytest.mark.asyncio
    async def test_on_finished_receives_outcome(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 1)
        received: list[QuizOutcome] = []

        async def on_finished(outcome: QuizOutcome) -> None:
            received.append(outcome)

        session = new_session(store, notifications, student, lesson_id, on_finished)
        await session.load()
        await answer_all(session, ["A"])

        assert received == [session.outcome]
        await session.close()


class TestCountdown:
    """Tests for tick and timer expiry."""

    @pytest.mark.asyncio
    async def test_expiry_scores_answered_and_pending(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        """Two answered plus a pending selection count; the rest are wrong."""
        lesson_id = await quiz_lesson(store)
        quiz, questions = await seed_quiz(store, lesson_id, 5, time_limit_minutes=1)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()
        await answer_all(session, ["A", "A"])
        await session.select_answer("A")

        for _ in range(59):
            assert await session.tick() == QuizSessionState.IN_PROGRESS
        assert session.time_remaining == 1
        assert await session.tick() == QuizSessionState.RESULTS

        outcome = session.outcome
        assert outcome.timed_out is True
        assert outcome.correct_count == 3
        assert outcome.score == 60
        assert session.answers == {q.id: "A" for q in questions[:3]}
        assert [r.student_answer for r in outcome.results[3:]] == [None, None]
        assert len(await store.list_quiz_attempts(student.user_id, quiz.id)) == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_late_tick_is_ignored(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        """A tick after scoring neither rescores nor changes results."""
        lesson_id = await quiz_lesson(store)
        quiz, _ = await seed_quiz(store, lesson_id, 1, time_limit_minutes=1)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()
        await answer_all(session, ["A"])
        outcome = session.outcome

        assert await session.tick() == QuizSessionState.RESULTS

        assert session.outcome is outcome
        assert len(await store.list_quiz_attempts(student.user_id, quiz.id)) == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_expiry_racing_final_advance_scores_once(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        """The last tick and the last advance land together; one run is scored."""
        lesson_id = await quiz_lesson(store)
        quiz, _ = await seed_quiz(store, lesson_id, 2, time_limit_minutes=1)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()
        await answer_all(session, ["A"])
        for _ in range(59):
            await session.tick()
        await session.select_answer("A")

        results = await asyncio.gather(
            session.tick(), session.advance(), return_exceptions=True
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], QuizStateError)
        assert QuizSessionState.RESULTS in results
        assert session.outcome.correct_count == 2
        assert len(await store.list_quiz_attempts(student.user_id, quiz.id)) == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_actions_after_results_are_rejected(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 1)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()
        await answer_all(session, ["A"])

        with pytest.raises(QuizStateError):
            await session.select_answer("A")
        with pytest.raises(QuizStateError):
            await session.advance()
        await session.close()

    @pytest.mark.asyncio
    async def test_auto_tick_counts_down(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        """Background timer task feeds ticks into the session."""
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 1, time_limit_minutes=1)
        session = QuizSession(
            store, notifications, student, lesson_id, tick_seconds=0.001
        )
        await session.load()

        for _ in range(200):
            if session.state == QuizSessionState.RESULTS:
                break
            await asyncio.sleep(0.01)

        assert session.state == QuizSessionState.RESULTS
        assert session.outcome.timed_out is True
        assert session.outcome.score == 0
        await session.close()


class TestRetakeAndClose:
    """Tests for retake and close."""

    @pytest.mark.asyncio
    async def test_retake_records_second_attempt(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        quiz, _ = await seed_quiz(store, lesson_id, 2, time_limit_minutes=1)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()
        await answer_all(session, ["B", "B"])

        assert await session.retake() == QuizSessionState.IN_PROGRESS
        assert session.outcome is None
        assert session.answers == {}
        assert session.time_remaining == 60
        await answer_all(session, ["A", "A"])

        attempts = await store.list_quiz_attempts(student.user_id, quiz.id)
        assert [a.score for a in attempts] == [0, 100]
        assert attempts[0].id != attempts[1].id
        assert session.attempt_count == 2
        await session.close()

    @pytest.mark.asyncio
    async def test_retake_only_from_results(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 2)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()

        with pytest.raises(QuizStateError):
            await session.retake()
        await session.close()

    @pytest.mark.asyncio
    async def test_close_mid_quiz_persists_nothing(
        self,
        store: InMemoryStore,
        notifications: NotificationCenter,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        quiz, _ = await seed_quiz(store, lesson_id, 3, time_limit_minutes=1)
        session = new_session(store, notifications, student, lesson_id)
        await session.load()
        await answer_all(session, ["A"])

        await session.close()

        assert session.state == QuizSessionState.CLOSED
        assert await store.list_quiz_attempts(student.user_id, quiz.id) == []
        with pytest.raises(QuizStateError):
            await session.tick()


class TestQuizSessionManager:
    """Tests for the session registry."""

    @pytest.mark.asyncio
    async def test_start_loads_and_registers(
        self,
        store: InMemoryStore,
        quiz_sessions: QuizSessionManager,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 2)

        session = await quiz_sessions.start(student, lesson_id)

        assert session.state == QuizSessionState.IN_PROGRESS
        assert quiz_sessions.get(student, session.id) is session
        assert len(quiz_sessions) == 1
        await quiz_sessions.close_all()

    @pytest.mark.asyncio
    async def test_other_student_cannot_see_session(
        self,
        store: InMemoryStore,
        quiz_sessions: QuizSessionManager,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 2)
        session = await quiz_sessions.start(student, lesson_id)

        with pytest.raises(SessionNotFoundError):
            quiz_sessions.get(StudentContext(user_id=uuid4()), session.id)
        await quiz_sessions.close_all()

    @pytest.mark.asyncio
    async def test_close_forgets_session(
        self,
        store: InMemoryStore,
        quiz_sessions: QuizSessionManager,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 2)
        session = await quiz_sessions.start(student, lesson_id)

        await quiz_sessions.close(student, session.id)

        assert session.state == QuizSessionState.CLOSED
        assert len(quiz_sessions) == 0
        with pytest.raises(SessionNotFoundError):
            quiz_sessions.get(student, session.id)

    @pytest.mark.asyncio
    async def test_repeated_runs_stay_bounded(
        self,
        store: InMemoryStore,
        quiz_sessions: QuizSessionManager,
        student: StudentContext,
    ) -> None:
        """Starting again replaces the student's older session for the lesson."""
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 1)

        started = []
        for _ in range(50):
            session = await quiz_sessions.start(student, lesson_id)
            await answer_all(session, ["A"])
            started.append(session)
        await asyncio.sleep(0)

        assert len(quiz_sessions) == 1
        assert quiz_sessions.get(student, started[-1].id) is started[-1]
        assert all(s.state == QuizSessionState.CLOSED for s in started[:-1])
        live = [
            t
            for t in asyncio.all_tasks()
            if t.get_name().startswith("quiz_session_") and not t.done()
        ]
        assert live == []
        await quiz_sessions.close_all()

    @pytest.mark.asyncio
    async def test_finished_session_can_still_be_retaken(
        self,
        store: InMemoryStore,
        quiz_sessions: QuizSessionManager,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 1)
        session = await quiz_sessions.start(student, lesson_id)
        await answer_all(session, ["B"])
        await asyncio.sleep(0)

        assert await session.retake() == QuizSessionState.IN_PROGRESS
        await answer_all(session, ["A"])

        assert session.outcome.passed is True
        assert session.attempt_count == 2
        await quiz_sessions.close_all()

    @pytest.mark.asyncio
    async def test_sessions_of_other_students_are_kept(
        self,
        store: InMemoryStore,
        quiz_sessions: QuizSessionManager,
        student: StudentContext,
    ) -> None:
        lesson_id = await quiz_lesson(store)
        await seed_quiz(store, lesson_id, 1)
        other = StudentContext(user_id=uuid4())

        mine = await quiz_sessions.start(student, lesson_id)
        theirs = await quiz_sessions.start(other, lesson_id)

        assert len(quiz_sessions) == 2
        assert mine.state == QuizSessionState.IN_PROGRESS
        assert quiz_sessions.get(other, theirs.id) is theirs
        await quiz_sessions.close_all()
