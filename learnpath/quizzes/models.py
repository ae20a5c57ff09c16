"""Quiz attempt records and session value types."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class QuizSessionState(str, Enum):
    """Lifecycle of one quiz run."""

    LOADING = "loading"
    UNAVAILABLE = "unavailable"  # No quiz or no questions for the lesson
    IN_PROGRESS = "in_progress"
    SCORING = "scoring"
    RESULTS = "results"  # Terminal for this run
    CLOSED = "closed"  # Torn down, nothing persisted


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Append-only: attempted_at + id in the clustering key keeps every attempt
QUIZ_ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempts (
    student_id UUID,
    quiz_id UUID,
    attempted_at TIMESTAMP,
    id UUID,
    score INT,
    answers MAP<TEXT, TEXT>,
    passed BOOLEAN,
    PRIMARY KEY ((student_id, quiz_id), attempted_at, id)
) WITH CLUSTERING ORDER BY (attempted_at ASC, id ASC)
"""

QUIZZES_TABLES_CQL = [QUIZ_ATTEMPTS_TABLE_CQL]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass(frozen=True)
class QuizAttempt:
    """Immutable record of one scored quiz run."""

    quiz_id: UUID
    student_id: UUID
    score: int
    answers: dict[UUID, str]
    passed: bool
    id: UUID = field(default_factory=uuid4)
    attempted_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "QuizAttempt":
        """Create QuizAttempt from Cassandra row (answers keyed by text ids)."""
        return cls(
            id=row.id,
            quiz_id=row.quiz_id,
            student_id=row.student_id,
            score=row.score,
            answers={UUID(k): v for k, v in (row.answers or {}).items()},
            passed=bool(row.passed),
            attempted_at=row.attempted_at,
        )


@dataclass(frozen=True)
class QuestionResult:
    """Per-question outcome shown on the results screen."""

    question_id: UUID
    question: str
    student_answer: str | None
    correct_answer: str
    is_correct: bool
    explanation: str | None = None


@dataclass(frozen=True)
class QuizOutcome:
    """Result of scoring one run.

    ``attempt_id`` is None when the attempt could not be persisted.
    """

    quiz_id: UUID
    lesson_id: UUID
    score: int
    passed: bool
    passing_score: int
    correct_count: int
    question_count: int
    results: list[QuestionResult]
    attempt_id: UUID | None = None
    timed_out: bool = False

    @property
    def persisted(self) -> bool:
        return self.attempt_id is not None
