"""Course player: lesson navigation and completion triggers."""

from .sequencer import (
    LessonSequencer,
    ManualCompletionNotAllowedError,
    NoCurrentLessonError,
    NotAQuizLessonError,
    PlayerError,
    PlayerKind,
    player_kind,
)


__all__ = [
    "LessonSequencer",
    "ManualCompletionNotAllowedError",
    "NoCurrentLessonError",
    "NotAQuizLessonError",
    "PlayerError",
    "PlayerKind",
    "player_kind",
]
