"""Registry of active quiz sessions.

The HTTP layer is stateless between requests, so running sessions (and their
countdown tasks) live here, keyed by session id and owned by one student.
"""

from uuid import UUID

import structlog

from learnpath.auth.context import StudentContext, require_context
from learnpath.notifications.service import NotificationCenter
from learnpath.storage import LearningStore

from .models import QuizSessionState
from .session import QuizFinishedCallback, QuizSession, SessionNotFoundError


logger = structlog.get_logger(__name__)


class QuizSessionManager:
    """Creates, looks up and tears down quiz sessions."""

    def __init__(
        self,
        store: LearningStore,
        notifications: NotificationCenter,
        tick_seconds: float = 1.0,
        auto_tick: bool = True,
    ):
        self.store = store
        self.notifications = notifications
        self.tick_seconds = tick_seconds
        self.auto_tick = auto_tick
        self._sessions: dict[UUID, QuizSession] = {}
        # (student_id, lesson_id) -> id of that student's latest session for the lesson
        self._latest: dict[tuple[UUID, UUID], UUID] = {}

    def create(
        self,
        ctx: StudentContext | None,
        lesson_id: UUID,
        on_finished: QuizFinishedCallback | None = None,
    ) -> QuizSession:
        """Build a session in LOADING without registering it."""
        return QuizSession(
            self.store,
            self.notifications,
            ctx,
            lesson_id,
            tick_seconds=self.tick_seconds,
            auto_tick=self.auto_tick,
            on_finished=on_finished,
        )

    async def start(
        self,
        ctx: StudentContext | None,
        lesson_id: UUID,
        on_finished: QuizFinishedCallback | None = None,
    ) -> QuizSession:
        """Create, load and register a session for the lesson's quiz."""
        session = self.create(ctx, lesson_id, on_finished)
        return await self.register(session)

    async def register(self, session: QuizSession) -> QuizSession:
        """Load ``session`` if needed and track it until closed.

        A student keeps at most one session per lesson; an older one for the
        same lesson is closed and forgotten.
        """
        if session.state == QuizSessionState.LOADING:
            await session.load()

        key = (session.ctx.user_id, session.lesson_id)
        previous_id = self._latest.get(key)
        if previous_id is not None and previous_id != session.id:
            previous = self._sessions.get(previous_id)
            if previous is not None:
                await self.discard(previous)
                logger.debug(
                    "quiz_session_replaced",
                    quiz_session_id=str(previous_id),
                    replaced_by=str(session.id),
                )

        self._sessions[session.id] = session
        self._latest[key] = session.id
        logger.debug(
            "quiz_session_registered",
            quiz_session_id=str(session.id),
            active_sessions=len(self._sessions),
        )
        return session

    def get(self, ctx: StudentContext | None, session_id: UUID) -> QuizSession:
        """Session owned by the caller.

        Raises:
            SessionNotFoundError: If unknown or owned by someone else
        """
        ctx = require_context(ctx)
        session = self._sessions.get(session_id)
        if session is None or session.ctx.user_id != ctx.user_id:
            raise SessionNotFoundError
        return session

    async def close(self, ctx: StudentContext | None, session_id: UUID) -> None:
        session = self.get(ctx, session_id)
        self._forget(session)
        await session.close()

    async def discard(self, session: QuizSession) -> None:
        """Close ``session`` and forget it, whether or not it is still tracked."""
        self._forget(session)
        await session.close()

    async def close_all(self) -> None:
        """Close every session (application shutdown)."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        self._latest.clear()
        for session in sessions:
            await session.close()
        if sessions:
            logger.info("quiz_sessions_closed", count=len(sessions))

    def _forget(self, session: QuizSession) -> None:
        self._sessions.pop(session.id, None)
        key = (session.ctx.user_id, session.lesson_id)
        if self._latest.get(key) == session.id:
            del self._latest[key]

    def __len__(self) -> int:
        return len(self._sessions)
