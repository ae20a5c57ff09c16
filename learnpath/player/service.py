"""Open course players, one per (student, course)."""

from uuid import UUID

import structlog

from learnpath.auth.context import StudentContext, require_context
from learnpath.progress.service import ProgressTracker
from learnpath.quizzes.service import QuizSessionManager

from .sequencer import LessonNotFoundError, LessonSequencer, PlayerError


logger = structlog.get_logger(__name__)


class PlayerNotOpenError(PlayerError):
    def __init__(self, message: str = "Course player is not open"):
        super().__init__(message, "player_not_open")


class PlayerRegistry:
    """Keeps each student's sequencer between requests."""

    def __init__(
        self,
        tracker: ProgressTracker,
        quiz_sessions: QuizSessionManager,
        video_threshold: float = 90.0,
    ):
        self.tracker = tracker
        self.quiz_sessions = quiz_sessions
        self.video_threshold = video_threshold
        self._players: dict[tuple[UUID, UUID], LessonSequencer] = {}

    async def open(self, ctx: StudentContext | None, course_id: UUID) -> LessonSequencer:
        """Open (or reopen from scratch) the player for a course."""
        ctx = require_context(ctx)
        key = (ctx.user_id, course_id)

        previous = self._players.pop(key, None)
        if previous is not None and previous.quiz_session is not None:
            await self.quiz_sessions.discard(previous.quiz_session)

        sequencer = LessonSequencer(
            self.tracker,
            self.quiz_sessions,
            ctx,
            course_id,
            video_threshold=self.video_threshold,
        )
        await sequencer.load()
        self._players[key] = sequencer
        return sequencer

    def get(self, ctx: StudentContext | None, course_id: UUID) -> LessonSequencer:
        """Raises PlayerNotOpenError if the course was not opened by the caller."""
        ctx = require_context(ctx)
        sequencer = self._players.get((ctx.user_id, course_id))
        if sequencer is None:
            raise PlayerNotOpenError
        return sequencer

    async def select(
        self, ctx: StudentContext | None, course_id: UUID, lesson_id: UUID
    ) -> LessonSequencer:
        """Select any existing lesson by id, including one of another course."""
        sequencer = self.get(ctx, course_id)
        lesson = await self.tracker.store.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFoundError
        await sequencer.select_lesson(lesson)
        return sequencer
