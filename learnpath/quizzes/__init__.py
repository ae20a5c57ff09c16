"""Timed quiz sessions and scoring.

Provides:
- Quiz attempt records
- Per-student quiz session state machine with countdown
"""

from .models import (
    QUIZZES_TABLES_CQL,
    QuestionResult,
    QuizAttempt,
    QuizOutcome,
    QuizSessionState,
)


__all__ = [
    "QUIZZES_TABLES_CQL",
    "QuestionResult",
    "QuizAttempt",
    "QuizOutcome",
    "QuizSessionState",
]
