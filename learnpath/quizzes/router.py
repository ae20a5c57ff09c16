"""Quiz session API endpoints.

Provides routes for:
- Starting a timed quiz for a lesson
- Answering, advancing and retaking
- Closing a session
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from learnpath.auth.dependencies import CurrentUser
from learnpath.progress.dependencies import ProgressTrackerDep

from .dependencies import QuizSessionsDep, handle_quiz_error
from .models import QuizOutcome
from .schemas import AnswerRequest, QuizSessionResponse
from .session import QuizError


router = APIRouter(prefix="/v1/quizzes", tags=["quizzes"])


@router.post(
    "/lessons/{lesson_id}/session",
    response_model=QuizSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start quiz session",
)
async def start_quiz_session(
    lesson_id: UUID,
    sessions: QuizSessionsDep,
    tracker: ProgressTrackerDep,
    user: CurrentUser,
) -> QuizSessionResponse:
    """Load the lesson's quiz and start the countdown.

    A lesson without a quiz, or a quiz without questions, yields a session in
    the ``unavailable`` state. Passing the quiz completes the lesson.
    """
    lesson = await tracker.store.get_lesson(lesson_id)
    if lesson is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Lesson not found",
        )

    async def complete_on_pass(outcome: QuizOutcome) -> None:
        if outcome.passed:
            await tracker.set_lesson_completion(user, lesson.id, lesson.course_id, True)

    session = await sessions.start(user, lesson_id, on_finished=complete_on_pass)
    return QuizSessionResponse.from_session(session)


@router.get(
    "/sessions/{session_id}",
    response_model=QuizSessionResponse,
    summary="Get quiz session",
)
async def get_quiz_session(
    session_id: UUID,
    sessions: QuizSessionsDep,
    user: CurrentUser,
) -> QuizSessionResponse:
    """Current question, remaining time, or results."""
    try:
        return QuizSessionResponse.from_session(sessions.get(user, session_id))
    except QuizError as e:
        raise handle_quiz_error(e) from e


@router.post(
    "/sessions/{session_id}/answer",
    response_model=QuizSessionResponse,
    summary="Select answer",
)
async def select_answer(
    session_id: UUID,
    data: AnswerRequest,
    sessions: QuizSessionsDep,
    user: CurrentUser,
) -> QuizSessionResponse:
    """Set the pending selection for the current question."""
    try:
        session = sessions.get(user, session_id)
        await session.select_answer(data.option)
    except QuizError as e:
        raise handle_quiz_error(e) from e
    return QuizSessionResponse.from_session(session)


@router.post(
    "/sessions/{session_id}/advance",
    response_model=QuizSessionResponse,
    summary="Next question or finish",
)
async def advance(
    session_id: UUID,
    sessions: QuizSessionsDep,
    user: CurrentUser,
) -> QuizSessionResponse:
    """Commit the selection; after the last question the run is scored."""
    try:
        session = sessions.get(user, session_id)
        await session.advance()
    except QuizError as e:
        raise handle_quiz_error(e) from e
    return QuizSessionResponse.from_session(session)


@router.post(
    "/sessions/{session_id}/retake",
    response_model=QuizSessionResponse,
    summary="Retake quiz",
)
async def retake(
    session_id: UUID,
    sessions: QuizSessionsDep,
    user: CurrentUser,
) -> QuizSessionResponse:
    """Start a new run from the results screen."""
    try:
        session = sessions.get(user, session_id)
        await session.retake()
    except QuizError as e:
        raise handle_quiz_error(e) from e
    return QuizSessionResponse.from_session(session)


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Close quiz session",
)
async def close_session(
    session_id: UUID,
    sessions: QuizSessionsDep,
    user: CurrentUser,
) -> None:
    """Discard the session; an unfinished run is not saved."""
    try:
        await sessions.close(user, session_id)
    except QuizError as e:
        raise handle_quiz_error(e) from e
