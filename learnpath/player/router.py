"""Course player API endpoints.

Provides routes for:
- Opening a course and selecting lessons
- Video progress and end-of-video reports
- Manual completion toggle
- Starting the current lesson's quiz
"""

from uuid import UUID

from fastapi import APIRouter, status

from learnpath.auth.dependencies import CurrentUser
from learnpath.quizzes.schemas import QuizSessionResponse

from .dependencies import PlayerRegistryDep, handle_player_error
from .schemas import (
    ManualCompletionRequest,
    PlayerStateResponse,
    SelectLessonRequest,
    VideoProgressRequest,
)
from .sequencer import PlayerError


router = APIRouter(prefix="/v1/player", tags=["player"])


@router.post(
    "/courses/{course_id}",
    response_model=PlayerStateResponse,
    summary="Open course player",
)
async def open_player(
    course_id: UUID,
    players: PlayerRegistryDep,
    user: CurrentUser,
) -> PlayerStateResponse:
    """Load lessons and completions; the first lesson becomes current."""
    sequencer = await players.open(user, course_id)
    return PlayerStateResponse.from_sequencer(sequencer)


@router.get(
    "/courses/{course_id}",
    response_model=PlayerStateResponse,
    summary="Get player state",
)
async def get_player(
    course_id: UUID,
    players: PlayerRegistryDep,
    user: CurrentUser,
) -> PlayerStateResponse:
    try:
        return PlayerStateResponse.from_sequencer(players.get(user, course_id))
    except PlayerError as e:
        raise handle_player_error(e) from e


@router.post(
    "/courses/{course_id}/select",
    response_model=PlayerStateResponse,
    summary="Select lesson",
)
async def select_lesson(
    course_id: UUID,
    data: SelectLessonRequest,
    players: PlayerRegistryDep,
    user: CurrentUser,
) -> PlayerStateResponse:
    """Switch the current lesson."""
    try:
        sequencer = await players.select(user, course_id, data.lesson_id)
    except PlayerError as e:
        raise handle_player_error(e) from e
    return PlayerStateResponse.from_sequencer(sequencer)


@router.post(
    "/courses/{course_id}/next",
    response_model=PlayerStateResponse,
    summary="Go to next lesson",
)
async def next_lesson(
    course_id: UUID,
    players: PlayerRegistryDep,
    user: CurrentUser,
) -> PlayerStateResponse:
    """Move to the following lesson; stays put on the last one."""
    try:
        sequencer = players.get(user, course_id)
    except PlayerError as e:
        raise handle_player_error(e) from e

    upcoming = sequencer.next_lesson()
    if upcoming is not None:
        await sequencer.select_lesson(upcoming)
    return PlayerStateResponse.from_sequencer(sequencer)


@router.post(
    "/courses/{course_id}/video-progress",
    response_model=PlayerStateResponse,
    summary="Report video progress",
)
async def video_progress(
    course_id: UUID,
    data: VideoProgressRequest,
    players: PlayerRegistryDep,
    user: CurrentUser,
) -> PlayerStateResponse:
    """Completes the lesson the first time playback passes the threshold."""
    try:
        sequencer = players.get(user, course_id)
    except PlayerError as e:
        raise handle_player_error(e) from e

    triggered = await sequencer.on_video_progress(data.percent)
    return PlayerStateResponse.from_sequencer(sequencer, completion_triggered=triggered)


@router.post(
    "/courses/{course_id}/video-ended",
    response_model=PlayerStateResponse,
    summary="Report video ended",
)
async def video_ended(
    course_id: UUID,
    players: PlayerRegistryDep,
    user: CurrentUser,
) -> PlayerStateResponse:
    try:
        sequencer = players.get(user, course_id)
    except PlayerError as e:
        raise handle_player_error(e) from e

    triggered = await sequencer.on_video_ended()
    return PlayerStateResponse.from_sequencer(sequencer, completion_triggered=triggered)


@router.post(
    "/courses/{course_id}/manual-completion",
    response_model=PlayerStateResponse,
    summary="Toggle lesson completion",
)
async def manual_completion(
    course_id: UUID,
    data: ManualCompletionRequest,
    players: PlayerRegistryDep,
    user: CurrentUser,
) -> PlayerStateResponse:
    """Checkbox for video, PDF and text lessons. Quiz lessons are rejected."""
    try:
        sequencer = players.get(user, course_id)
        percentage = await sequencer.set_manual_completion(data.completed)
    except PlayerError as e:
        raise handle_player_error(e) from e
    return PlayerStateResponse.from_sequencer(
        sequencer, progress_percentage=percentage
    )


@router.post(
    "/courses/{course_id}/quiz",
    response_model=QuizSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start quiz for current lesson",
)
async def start_quiz(
    course_id: UUID,
    players: PlayerRegistryDep,
    user: CurrentUser,
) -> QuizSessionResponse:
    """Passing the quiz completes the lesson and advances the player.

    Answer it through the ``/v1/quizzes/sessions`` endpoints.
    """
    try:
        session = await players.get(user, course_id).start_quiz()
    except PlayerError as e:
        raise handle_player_error(e) from e
    return QuizSessionResponse.from_session(session)
