"""Pydantic schemas for the course player."""

from uuid import UUID

from pydantic import BaseModel, Field

from learnpath.courses.models import Lesson, LessonType

from .sequencer import LessonSequencer, PlayerKind


class SelectLessonRequest(BaseModel):
    lesson_id: UUID


class VideoProgressRequest(BaseModel):
    """Playback position as a percentage of the video length."""

    percent: float = Field(..., ge=0, le=100)


class ManualCompletionRequest(BaseModel):
    completed: bool


class LessonSummary(BaseModel):
    """Sidebar entry."""

    id: UUID
    title: str
    lesson_type: LessonType
    order_index: int
    duration_minutes: int
    completed: bool


class CurrentLessonView(BaseModel):
    """Lesson as rendered by its player."""

    id: UUID
    course_id: UUID
    title: str
    description: str
    lesson_type: LessonType
    player: PlayerKind
    video_url: str | None = None
    pdf_url: str | None = None
    content: str | None = None
    completed: bool

    @classmethod
    def from_lesson(cls, lesson: Lesson, sequencer: LessonSequencer) -> "CurrentLessonView":
        return cls(
            id=lesson.id,
            course_id=lesson.course_id,
            title=lesson.title,
            description=lesson.description,
            lesson_type=lesson.lesson_type,
            player=sequencer.player_kind,
            video_url=lesson.video_url,
            pdf_url=lesson.pdf_url,
            content=lesson.content,
            completed=sequencer.is_completed(lesson),
        )


class PlayerStateResponse(BaseModel):
    """Everything the course player page shows."""

    course_id: UUID
    lessons: list[LessonSummary]
    current_lesson: CurrentLessonView | None = None
    next_lesson_id: UUID | None = None
    quiz_session_id: UUID | None = None
    completion_triggered: bool = False
    progress_percentage: int | None = None

    @classmethod
    def from_sequencer(
        cls,
        sequencer: LessonSequencer,
        completion_triggered: bool = False,
        progress_percentage: int | None = None,
    ) -> "PlayerStateResponse":
        current = sequencer.current_lesson
        upcoming = sequencer.next_lesson()
        return cls(
            course_id=sequencer.course_id,
            lessons=[
                LessonSummary(
                    id=lesson.id,
                    title=lesson.title,
                    lesson_type=lesson.lesson_type,
                    order_index=lesson.order_index,
                    duration_minutes=lesson.duration_minutes,
                    completed=sequencer.is_completed(lesson),
                )
                for lesson in sequencer.lessons
            ],
            current_lesson=(
                CurrentLessonView.from_lesson(current, sequencer) if current else None
            ),
            next_lesson_id=upcoming.id if upcoming else None,
            quiz_session_id=sequencer.quiz_session.id if sequencer.quiz_session else None,
            completion_triggered=completion_triggered,
            progress_percentage=progress_percentage,
        )
