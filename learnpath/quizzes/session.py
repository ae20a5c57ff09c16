"""Timed quiz session state machine.

One ``QuizSession`` is one student's run through one lesson's quiz:

    LOADING -> IN_PROGRESS | UNAVAILABLE
    IN_PROGRESS -> SCORING -> RESULTS
    RESULTS -> LOADING (retake)
    any -> CLOSED

User actions and countdown ticks are put on an ``asyncio.Queue`` and handled
one at a time by a single consumer task, so a tick reaching zero and a final
``advance`` can never both score the run.
"""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import structlog

from learnpath.auth.context import StudentContext, require_context
from learnpath.core.context import set_quiz_session_id
from learnpath.courses.models import Quiz, QuizQuestion
from learnpath.notifications.service import NotificationCenter
from learnpath.storage import LearningStore, StorageError
from learnpath.utils import percent_of

from .models import QuestionResult, QuizAttempt, QuizOutcome, QuizSessionState


logger = structlog.get_logger(__name__)

QuizFinishedCallback = Callable[[QuizOutcome], Awaitable[None]]

_IDLE_STATES = (QuizSessionState.RESULTS, QuizSessionState.UNAVAILABLE)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class QuizError(Exception):
    """Base quiz error."""

    def __init__(self, message: str, code: str = "quiz_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NoSelectionError(QuizError):
    """Advance attempted without choosing an option."""

    def __init__(self, message: str = "Please select an answer"):
        super().__init__(message, "no_selection")


class InvalidOptionError(QuizError):
    """Selected option is not one of the current question's options."""

    def __init__(self, message: str = "Option is not valid for this question"):
        super().__init__(message, "invalid_option")


class QuizStateError(QuizError):
    """Action not allowed in the session's current state."""

    def __init__(self, message: str = "Action not allowed in the current quiz state"):
        super().__init__(message, "invalid_state")


class SessionNotFoundError(QuizError):
    """No active session with that id for the caller."""

    def __init__(self, message: str = "Quiz session not found"):
        super().__init__(message, "session_not_found")


# ==============================================================================
# Events
# ==============================================================================


class _EventKind(str, Enum):
    LOAD = "load"
    SELECT = "select"
    ADVANCE = "advance"
    TICK = "tick"
    RETAKE = "retake"


@dataclass
class _Event:
    kind: _EventKind
    payload: Any = None
    reply: asyncio.Future | None = None


# ==============================================================================
# Quiz Session
# ==============================================================================


class QuizSession:
    """A student's timed run through the quiz attached to a lesson."""

    def __init__(
        self,
        store: LearningStore,
        notifications: NotificationCenter,
        ctx: StudentContext | None,
        lesson_id: UUID,
        tick_seconds: float = 1.0,
        auto_tick: bool = True,
        on_finished: QuizFinishedCallback | None = None,
    ):
        """Create a session in LOADING.

        Args:
            store: Learning store
            notifications: Where persistence failures are reported
            ctx: Acting student
            lesson_id: Quiz lesson
            tick_seconds: Wall-clock length of one countdown second
            auto_tick: Run the countdown task; when False only ``tick()`` counts down
            on_finished: Awaited with the outcome each time a run is scored

        Raises:
            AuthRequiredError: If ``ctx`` is missing
        """
        self.ctx = require_context(ctx)
        self.store = store
        self.notifications = notifications
        self.lesson_id = lesson_id
        self.tick_seconds = tick_seconds
        self.auto_tick = auto_tick
        self.on_finished = on_finished

        self.id = uuid4()
        self.state = QuizSessionState.LOADING
        self.quiz: Quiz | None = None
        self.questions: list[QuizQuestion] = []
        self.current_index = 0
        self.pending_selection: str | None = None
        self.answers: dict[UUID, str] = {}
        self.time_remaining: int | None = None
        self.outcome: QuizOutcome | None = None
        self.attempt_count = 0

        self._queue: asyncio.Queue[_Event] = asyncio.Queue()
        self._consumer_task: asyncio.Task | None = None
        self._timer_task: asyncio.Task | None = None
        self._log = logger.bind(
            quiz_session_id=str(self.id),
            student_id=str(self.ctx.user_id),
            lesson_id=str(lesson_id),
        )

    # ==========================================================================
    # Read-only views
    # ==========================================================================

    @property
    def current_question(self) -> QuizQuestion | None:
        if self.state != QuizSessionState.IN_PROGRESS:
            return None
        return self.questions[self.current_index]

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.questions) - 1

    # ==========================================================================
    # Public actions (serialized through the event queue)
    # ==========================================================================

    async def load(self) -> QuizSessionState:
        """Fetch the quiz and its questions and start the run."""
        return await self._submit(_EventKind.LOAD)

    async def select_answer(self, option: str) -> None:
        """Set the pending selection for the current question.

        Raises:
            QuizStateError: If the run is not in progress
            InvalidOptionError: If ``option`` is not offered by the question
        """
        await self._submit(_EventKind.SELECT, option)

    async def advance(self) -> QuizSessionState:
        """Commit the pending selection and move to the next question.

        After the last question the run is scored.

        Raises:
            QuizStateError: If the run is not in progress
            NoSelectionError: If nothing is selected
        """
        return await self._submit(_EventKind.ADVANCE)

    async def tick(self) -> QuizSessionState:
        """Count down one second. Ignored outside IN_PROGRESS."""
        return await self._submit(_EventKind.TICK)

    async def retake(self) -> QuizSessionState:
        """Start a fresh run after results; scored as a new attempt.

        Raises:
            QuizStateError: If the session is not showing results
        """
        return await self._submit(_EventKind.RETAKE)

    async def close(self) -> None:
        """Tear the session down. Nothing is persisted for an unscored run."""
        if self.state == QuizSessionState.CLOSED:
            return

        previous = self.state
        self.state = QuizSessionState.CLOSED
        await self._cancel_timer()

        if self._consumer_task is not None:
            self._consumer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer_task
            self._consumer_task = None

        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event.reply is not None and not event.reply.done():
                event.reply.set_exception(QuizStateError("Quiz session is closed"))

        self._log.info("quiz_session_closed", previous_state=previous.value)

    # ==========================================================================
    # Event loop
    # ==========================================================================

    async def _submit(self, kind: _EventKind, payload: Any = None) -> Any:
        if self.state == QuizSessionState.CLOSED:
            raise QuizStateError("Quiz session is closed")

        self._ensure_consumer()
        reply = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(_Event(kind, payload, reply))
        return await reply

    def _ensure_consumer(self) -> None:
        if self._consumer_task is None or self._consumer_task.done():
            self._consumer_task = asyncio.create_task(
                self._consume(),
                name=f"quiz_session_{self.id}",
            )

    async def _consume(self) -> None:
        set_quiz_session_id(self.id)
        while True:
            event = await self._queue.get()
            try:
                result = await self._handle(event)
            except asyncio.CancelledError:
                if event.reply is not None and not event.reply.done():
                    event.reply.cancel()
                raise
            except Exception as e:
                if event.reply is not None and not event.reply.done():
                    event.reply.set_exception(e)
                else:
                    self._log.exception("quiz_event_failed", event=event.kind.value)
            else:
                if event.reply is not None and not event.reply.done():
                    event.reply.set_result(result)
            finally:
                self._queue.task_done()

            # Nothing but a retake can follow; _submit restarts the consumer
            if self.state in _IDLE_STATES and self._queue.empty():
                self._log.debug("quiz_consumer_stopped", state=self.state.value)
                return

    async def _handle(self, event: _Event) -> Any:
        handlers = {
            _EventKind.LOAD: self._on_load,
            _EventKind.SELECT: self._on_select,
            _EventKind.ADVANCE: self._on_advance,
            _EventKind.TICK: self._on_tick,
            _EventKind.RETAKE: self._on_retake,
        }
        handler = handlers[event.kind]
        if event.kind == _EventKind.SELECT:
            return await handler(event.payload)
        return await handler()

    # ==========================================================================
    # Handlers
    # ==========================================================================

    async def _on_load(self) -> QuizSessionState:
        if self.state != QuizSessionState.LOADING:
            raise QuizStateError("Quiz is already loaded")

        try:
            quiz = await self.store.get_quiz_for_lesson(self.lesson_id)
            questions = await self.store.list_questions(quiz.id) if quiz else []
        except StorageError as e:
            self._log.error("quiz_load_failed", error=e.message)
            await self.notifications.error(
                self.ctx.user_id, "Failed to load quiz", e.code
            )
            quiz, questions = None, []

        self.quiz = quiz
        self.questions = questions
        self.current_index = 0
        self.pending_selection = None
        self.answers = {}
        self.outcome = None

        if quiz is None or not questions:
            self.state = QuizSessionState.UNAVAILABLE
            self._log.info("quiz_unavailable", has_quiz=quiz is not None)
            return self.state

        self.time_remaining = quiz.time_limit_seconds
        self.state = QuizSessionState.IN_PROGRESS
        self.attempt_count += 1

        if self.time_remaining is not None and self.auto_tick:
            self._timer_task = asyncio.create_task(
                self._run_timer(),
                name=f"quiz_timer_{self.id}",
            )

        self._log.info(
            "quiz_started",
            quiz_id=str(quiz.id),
            question_count=len(questions),
            time_limit_seconds=self.time_remaining,
            run=self.attempt_count,
        )
        return self.state

    async def _on_select(self, option: str) -> None:
        question = self._require_in_progress()
        if option not in question.options:
            raise InvalidOptionError
        self.pending_selection = option

    async def _on_advance(self) -> QuizSessionState:
        question = self._require_in_progress()
        if self.pending_selection is None:
            raise NoSelectionError

        self.answers[question.id] = self.pending_selection
        self.pending_selection = None

        if self.is_last_question:
            await self._score(timed_out=False)
        else:
            self.current_index += 1
        return self.state

    async def _on_tick(self) -> QuizSessionState:
        # Late ticks after scoring or for untimed quizzes are dropped
        if self.state != QuizSessionState.IN_PROGRESS or self.time_remaining is None:
            return self.state

        self.time_remaining = max(self.time_remaining - 1, 0)
        if self.time_remaining == 0:
            if self.pending_selection is not None:
                self.answers[self.questions[self.current_index].id] = (
                    self.pending_selection
                )
                self.pending_selection = None
            self._log.info("quiz_time_expired", answered=len(self.answers))
            await self._score(timed_out=True)
        return self.state

    async def _on_retake(self) -> QuizSessionState:
        if self.state != QuizSessionState.RESULTS:
            raise QuizStateError("Quiz can only be retaken from the results screen")
        self.state = QuizSessionState.LOADING
        self.time_remaining = None
        return await self._on_load()

    def _require_in_progress(self) -> QuizQuestion:
        if self.state != QuizSessionState.IN_PROGRESS:
            raise QuizStateError
        return self.questions[self.current_index]

    # ==========================================================================
    # Scoring
    # ==========================================================================

    async def _score(self, timed_out: bool) -> QuizOutcome:
        self.state = QuizSessionState.SCORING
        await self._cancel_timer()

        quiz = self.quiz
        results = [
            QuestionResult(
                question_id=q.id,
                question=q.question,
                student_answer=self.answers.get(q.id),
                correct_answer=q.correct_answer,
                # Exact, case-sensitive; unanswered never matches
                is_correct=self.answers.get(q.id) == q.correct_answer,
                explanation=q.explanation,
            )
            for q in self.questions
        ]
        correct = sum(1 for r in results if r.is_correct)
        score = percent_of(correct, len(self.questions))
        passed = score >= quiz.passing_score

        attempt = QuizAttempt(
            quiz_id=quiz.id,
            student_id=self.ctx.user_id,
            score=score,
            answers=dict(self.answers),
            passed=passed,
        )
        attempt_id: UUID | None = attempt.id
        try:
            await self.store.insert_quiz_attempt(attempt)
        except StorageError as e:
            attempt_id = None
            self._log.error(
                "quiz_attempt_persist_failed",
                quiz_id=str(quiz.id),
                score=score,
                error=e.message,
            )
            await self.notifications.error(
                self.ctx.user_id, "Failed to save quiz attempt", e.code
            )

        self.outcome = QuizOutcome(
            quiz_id=quiz.id,
            lesson_id=self.lesson_id,
            score=score,
            passed=passed,
            passing_score=quiz.passing_score,
            correct_count=correct,
            question_count=len(self.questions),
            results=results,
            attempt_id=attempt_id,
            timed_out=timed_out,
        )
        self.state = QuizSessionState.RESULTS

        self._log.info(
            "quiz_scored",
            quiz_id=str(quiz.id),
            score=score,
            passed=passed,
            correct=correct,
            total=len(self.questions),
            timed_out=timed_out,
            persisted=attempt_id is not None,
        )
        if attempt_id is not None:
            await self.notifications.success(
                self.ctx.user_id, f"Quiz submitted! Score: {score}%"
            )

        if self.on_finished is not None:
            await self.on_finished(self.outcome)
        return self.outcome

    # ==========================================================================
    # Countdown
    # ==========================================================================

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.tick_seconds)
            self._queue.put_nowait(_Event(_EventKind.TICK))

    async def _cancel_timer(self) -> None:
        task = self._timer_task
        self._timer_task = None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
