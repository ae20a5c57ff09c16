"""Database models for student progress tracking.

Cassandra table definitions for:
- Lesson completions: one row per (student, lesson) that is completed
- Enrollments: course enrollment with the cached progress percentage

Storage keeps completion as row presence; in memory the tracker works with
an explicit ``CompletionState`` per (student, lesson).
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class CompletionState(str, Enum):
    """Completion state of a lesson for one student."""

    NOT_STARTED = "not_started"
    COMPLETED = "completed"


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# (student_id, lesson_id) is the primary key: one completion per pair
LESSON_COMPLETIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_completions (
    student_id UUID,
    lesson_id UUID,
    completed_at TIMESTAMP,
    PRIMARY KEY (student_id, lesson_id)
)
"""

# (student_id, course_id) is the primary key: one enrollment per pair
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    student_id UUID,
    course_id UUID,
    id UUID,
    progress_percentage INT,
    enrolled_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY (student_id, course_id)
)
"""

# Lookup: enrollment id -> (student_id, course_id) for progress writes
ENROLLMENTS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_id (
    id UUID PRIMARY KEY,
    student_id UUID,
    course_id UUID
)
"""

PROGRESS_TABLES_CQL = [
    LESSON_COMPLETIONS_TABLE_CQL,
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_ID_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class LessonCompletion:
    """Evidence that a student finished a lesson.

    Attributes:
        student_id: Student UUID
        lesson_id: Lesson UUID
        completed_at: When the completion was recorded
    """

    def __init__(
        self,
        student_id: UUID,
        lesson_id: UUID,
        completed_at: datetime | None = None,
    ):
        self.student_id = student_id
        self.lesson_id = lesson_id
        self.completed_at = ensure_utc_aware(completed_at) or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "LessonCompletion":
        """Create LessonCompletion instance from Cassandra row."""
        return cls(
            student_id=row.student_id,
            lesson_id=row.lesson_id,
            completed_at=row.completed_at,
        )

    def __repr__(self) -> str:
        return f"<LessonCompletion student={self.student_id} lesson={self.lesson_id}>"


class Enrollment:
    """Course enrollment entity.

    ``progress_percentage`` is derived from the completion records at the
    moment it was last written; it is not recomputed continuously.

    Attributes:
        id: Enrollment UUID
        student_id: Student UUID
        course_id: Course UUID
        progress_percentage: Cached course progress (0-100)
        enrolled_at: Enrollment timestamp
        updated_at: Last progress write
    """

    def __init__(
        self,
        student_id: UUID,
        course_id: UUID,
        id: UUID | None = None,
        progress_percentage: int = 0,
        enrolled_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.student_id = student_id
        self.course_id = course_id
        self.progress_percentage = progress_percentage
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            id=row.id,
            student_id=row.student_id,
            course_id=row.course_id,
            progress_percentage=row.progress_percentage or 0,
            enrolled_at=row.enrolled_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "student_id": self.student_id,
            "course_id": self.course_id,
            "progress_percentage": self.progress_percentage,
            "enrolled_at": self.enrolled_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment student={self.student_id} course={self.course_id} "
            f"{self.progress_percentage}%>"
        )


class CompletionLedger:
    """In-memory (student, lesson) -> CompletionState mapping.

    Absent keys read as NOT_STARTED. Completing sets the state, un-completing
    sets it back; nothing is inferred from missing entries beyond that.
    """

    def __init__(self) -> None:
        self._states: dict[tuple[UUID, UUID], CompletionState] = {}
        self._completed_at: dict[tuple[UUID, UUID], datetime] = {}

    def state(self, student_id: UUID, lesson_id: UUID) -> CompletionState:
        """Current state for the pair."""
        return self._states.get((student_id, lesson_id), CompletionState.NOT_STARTED)

    def is_completed(self, student_id: UUID, lesson_id: UUID) -> bool:
        return self.state(student_id, lesson_id) == CompletionState.COMPLETED

    def completed_at(self, student_id: UUID, lesson_id: UUID) -> datetime | None:
        return self._completed_at.get((student_id, lesson_id))

    def set_completed(
        self, student_id: UUID, lesson_id: UUID, completed_at: datetime
    ) -> None:
        key = (student_id, lesson_id)
        self._states[key] = CompletionState.COMPLETED
        self._completed_at[key] = completed_at

    def set_not_started(self, student_id: UUID, lesson_id: UUID) -> None:
        key = (student_id, lesson_id)
        self._states[key] = CompletionState.NOT_STARTED
        self._completed_at.pop(key, None)

    def replace_student(
        self, student_id: UUID, completions: list[LessonCompletion]
    ) -> None:
        """Replace everything known about a student with fresh records."""
        for key in [k for k in self._states if k[0] == student_id]:
            del self._states[key]
            self._completed_at.pop(key, None)
        for completion in completions:
            self.set_completed(student_id, completion.lesson_id, completion.completed_at)

    def completed_lessons(self, student_id: UUID) -> set[UUID]:
        """Lesson ids the student has completed."""
        return {
            lesson_id
            for (sid, lesson_id), state in self._states.items()
            if sid == student_id and state == CompletionState.COMPLETED
        }
