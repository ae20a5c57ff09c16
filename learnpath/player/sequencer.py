"""Lesson sequencer: the course player's navigation and completion rules.

Keeps the ordered lesson list of one course for one student, the current
lesson, and decides when watching, finishing or passing a lesson counts as
completing it. Completion itself is delegated to the progress tracker.
"""

from enum import Enum
from uuid import UUID

import structlog

from learnpath.auth.context import StudentContext, require_context
from learnpath.courses.models import Lesson, LessonType
from learnpath.progress.service import ProgressTracker
from learnpath.quizzes.models import QuizOutcome, QuizSessionState
from learnpath.quizzes.service import QuizSessionManager
from learnpath.quizzes.session import QuizSession
from learnpath.storage import StorageError


logger = structlog.get_logger(__name__)


class PlayerKind(str, Enum):
    """Which player renders a lesson."""

    VIDEO = "video"
    PDF = "pdf"
    TEXT = "text"
    QUIZ = "quiz"
    UNAVAILABLE = "unavailable"  # Required media missing


def player_kind(lesson: Lesson | None) -> PlayerKind:
    """Player for ``lesson``; video and PDF lessons need their media URL."""
    if lesson is None:
        return PlayerKind.UNAVAILABLE
    if lesson.lesson_type == LessonType.QUIZ:
        return PlayerKind.QUIZ
    if lesson.lesson_type == LessonType.TEXT:
        return PlayerKind.TEXT
    if not lesson.media_url:
        return PlayerKind.UNAVAILABLE
    return PlayerKind(lesson.lesson_type.value)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class PlayerError(Exception):
    """Base player error."""

    def __init__(self, message: str, code: str = "player_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ManualCompletionNotAllowedError(PlayerError):
    """Quiz lessons are only completed by passing the quiz."""

    def __init__(self, message: str = "Quiz lessons are completed by passing the quiz"):
        super().__init__(message, "manual_completion_not_allowed")


class NoCurrentLessonError(PlayerError):
    def __init__(self, message: str = "No lesson selected"):
        super().__init__(message, "no_current_lesson")


class NotAQuizLessonError(PlayerError):
    def __init__(self, message: str = "Current lesson is not a quiz"):
        super().__init__(message, "not_quiz_lesson")


class LessonNotFoundError(PlayerError):
    def __init__(self, message: str = "Lesson not found"):
        super().__init__(message, "lesson_not_found")


# ==============================================================================
# Lesson Sequencer
# ==============================================================================


class LessonSequencer:
    """One student's pass through one course."""

    def __init__(
        self,
        tracker: ProgressTracker,
        quiz_sessions: QuizSessionManager,
        ctx: StudentContext | None,
        course_id: UUID,
        video_threshold: float = 90.0,
    ):
        self.ctx = require_context(ctx)
        self.tracker = tracker
        self.store = tracker.store
        self.quiz_sessions = quiz_sessions
        self.course_id = course_id
        self.video_threshold = video_threshold

        self.lessons: list[Lesson] = []
        self.current_lesson: Lesson | None = None
        self.quiz_session: QuizSession | None = None
        self._video_threshold_reached = False
        self._log = logger.bind(
            student_id=str(self.ctx.user_id), course_id=str(course_id)
        )

    # ==========================================================================
    # Navigation
    # ==========================================================================

    async def load(self) -> Lesson | None:
        """Load the ordered lessons and the student's completions.

        The first lesson becomes current; an empty course has none.
        """
        try:
            self.lessons = await self.store.list_lessons(self.course_id)
        except StorageError as e:
            self._log.error("player_lessons_load_failed", error=e.message)
            await self.tracker.notifications.error(
                self.ctx.user_id, "Failed to load lessons", e.code
            )
            self.lessons = []

        await self.tracker.load_completions(self.ctx)
        self.current_lesson = self.lessons[0] if self.lessons else None
        self._video_threshold_reached = False

        self._log.info(
            "player_loaded",
            lesson_count=len(self.lessons),
            current_lesson_id=str(self.current_lesson.id) if self.current_lesson else None,
        )
        return self.current_lesson

    async def select_lesson(self, lesson: Lesson) -> None:
        """Make ``lesson`` current.

        Course membership is not checked. An unfinished quiz run of the
        previous lesson is discarded.
        """
        await self._discard_quiz()
        self.current_lesson = lesson
        self._video_threshold_reached = False
        self._log.debug("lesson_selected", lesson_id=str(lesson.id))

    def next_lesson(self) -> Lesson | None:
        """Lesson after the current one in order, or None."""
        if self.current_lesson is None:
            return None
        ids = [lesson.id for lesson in self.lessons]
        if self.current_lesson.id not in ids:
            return None
        index = ids.index(self.current_lesson.id)
        if index + 1 >= len(self.lessons):
            return None
        return self.lessons[index + 1]

    @property
    def player_kind(self) -> PlayerKind:
        return player_kind(self.current_lesson)

    def is_completed(self, lesson: Lesson) -> bool:
        return self.tracker.is_lesson_completed(self.ctx, lesson.id)

    # ==========================================================================
    # Completion triggers
    # ==========================================================================

    async def on_video_progress(self, percent: float) -> bool:
        """Report playback position as a percentage of the video.

        Crossing the threshold completes the lesson once per selection.

        Returns:
            True if this call triggered a completion
        """
        lesson = self.current_lesson
        if lesson is None or self._video_threshold_reached:
            return False
        if percent <= self.video_threshold:
            return False

        self._video_threshold_reached = True
        if self.is_completed(lesson):
            return False

        self._log.info(
            "video_threshold_reached", lesson_id=str(lesson.id), percent=percent
        )
        return await self._complete(lesson)

    async def on_video_ended(self) -> bool:
        """Playback reached the end; completes the lesson if needed."""
        lesson = self.current_lesson
        if lesson is None or self.is_completed(lesson):
            return False
        return await self._complete(lesson)

    async def set_manual_completion(self, completed: bool) -> int | None:
        """Checkbox toggle for video, PDF and text lessons.

        Returns:
            The course percentage after the change, or None if it was not stored

        Raises:
            NoCurrentLessonError: If nothing is selected
            ManualCompletionNotAllowedError: For quiz lessons
        """
        lesson = self._require_lesson()
        if lesson.lesson_type == LessonType.QUIZ:
            raise ManualCompletionNotAllowedError
        return await self.tracker.set_lesson_completion(
            self.ctx, lesson.id, lesson.course_id, completed
        )

    # ==========================================================================
    # Quiz lessons
    # ==========================================================================

    async def start_quiz(self) -> QuizSession:
        """Start a quiz session for the current quiz lesson.

        Raises:
            NoCurrentLessonError: If nothing is selected
            NotAQuizLessonError: If the current lesson is not a quiz
        """
        lesson = self._require_lesson()
        if lesson.lesson_type != LessonType.QUIZ:
            raise NotAQuizLessonError

        await self._discard_quiz()
        self.quiz_session = await self.quiz_sessions.start(
            self.ctx, lesson.id, on_finished=self.on_quiz_finished
        )
        return self.quiz_session

    async def on_quiz_finished(self, outcome: QuizOutcome) -> None:
        """A quiz run was scored; a pass completes the lesson and moves on."""
        if not outcome.passed:
            self._log.info(
                "quiz_not_passed", lesson_id=str(outcome.lesson_id), score=outcome.score
            )
            return

        quiz_lesson = await self._lesson_by_id(outcome.lesson_id)
        course_id = quiz_lesson.course_id if quiz_lesson else self.course_id
        await self.tracker.set_lesson_completion(
            self.ctx, outcome.lesson_id, course_id, True
        )

        # A retake passed after the player moved on must not move it again
        current = self.current_lesson
        if current is None or current.id != outcome.lesson_id:
            self._log.debug(
                "auto_advance_skipped",
                lesson_id=str(outcome.lesson_id),
                current_lesson_id=str(current.id) if current else None,
            )
            return

        upcoming = self.next_lesson()
        if upcoming is not None:
            # The finished session stays registered so its results remain readable
            self.quiz_session = None
            self.current_lesson = upcoming
            self._video_threshold_reached = False
            self._log.info("auto_advanced", lesson_id=str(upcoming.id))

    # ==========================================================================
    # Helpers
    # ==========================================================================

    async def _complete(self, lesson: Lesson) -> bool:
        await self.tracker.set_lesson_completion(
            self.ctx, lesson.id, lesson.course_id, True
        )
        return self.is_completed(lesson)

    async def _lesson_by_id(self, lesson_id: UUID) -> Lesson | None:
        if self.current_lesson is not None and self.current_lesson.id == lesson_id:
            return self.current_lesson
        for lesson in self.lessons:
            if lesson.id == lesson_id:
                return lesson
        try:
            return await self.store.get_lesson(lesson_id)
        except StorageError as e:
            self._log.warning("quiz_lesson_lookup_failed", error=e.message)
            return None

    def _require_lesson(self) -> Lesson:
        if self.current_lesson is None:
            raise NoCurrentLessonError
        return self.current_lesson

    async def _discard_quiz(self) -> None:
        session = self.quiz_session
        self.quiz_session = None
        if session is None or session.state == QuizSessionState.CLOSED:
            return
        if session.state == QuizSessionState.RESULTS:
            return
        await self.quiz_sessions.discard(session)
