"""Database models for course content.

Cassandra table definitions and entities for:
- Courses: catalog entry with approval lifecycle
- Lessons: ordered content units of a course
- Quizzes: one per quiz-type lesson
- Quiz questions: ordered multiple-choice questions of a quiz
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class CourseStatus(str, Enum):
    """Course approval lifecycle."""

    DRAFT = "draft"  # Instructor still editing
    PENDING = "pending"  # Submitted, waiting for an admin
    APPROVED = "approved"  # Visible in the catalog
    REJECTED = "rejected"  # Sent back, may be resubmitted


class CourseLevel(str, Enum):
    """Course difficulty level."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class LessonType(str, Enum):
    """Lesson content type, selects the player."""

    VIDEO = "video"
    TEXT = "text"
    PDF = "pdf"
    QUIZ = "quiz"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    price DECIMAL,
    level TEXT,
    duration_hours INT,
    status TEXT,
    category_id UUID,
    instructor_id UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

COURSE_STATUS_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS courses_status_idx ON {keyspace}.courses (status)
"""

LESSON_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    id UUID PRIMARY KEY,
    course_id UUID,
    title TEXT,
    description TEXT,
    lesson_type TEXT,
    order_index INT,
    video_url TEXT,
    pdf_url TEXT,
    content TEXT,
    duration_minutes INT,
    created_at TIMESTAMP
)
"""

# Lessons of a course, clustered by order_index.
# lesson_id is part of the key because order_index is not unique.
LESSONS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_course (
    course_id UUID,
    order_index INT,
    lesson_id UUID,
    PRIMARY KEY (course_id, order_index, lesson_id)
) WITH CLUSTERING ORDER BY (order_index ASC, lesson_id ASC)
"""

# One quiz per lesson: lesson_id is the partition key
QUIZ_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quizzes_by_lesson (
    lesson_id UUID PRIMARY KEY,
    id UUID,
    title TEXT,
    description TEXT,
    passing_score INT,
    time_limit_minutes INT
)
"""

QUIZ_QUESTION_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_questions (
    quiz_id UUID,
    order_index INT,
    id UUID,
    question TEXT,
    options LIST<TEXT>,
    correct_answer TEXT,
    explanation TEXT,
    PRIMARY KEY (quiz_id, order_index, id)
) WITH CLUSTERING ORDER BY (order_index ASC, id ASC)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    COURSE_STATUS_INDEX_CQL,
    LESSON_TABLE_CQL,
    LESSONS_BY_COURSE_TABLE_CQL,
    QUIZ_TABLE_CQL,
    QUIZ_QUESTION_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Course:
    """Course catalog entry."""

    title: str
    instructor_id: UUID
    description: str = ""
    price: Decimal = Decimal(0)
    level: CourseLevel = CourseLevel.BEGINNER
    duration_hours: int = 0
    status: CourseStatus = CourseStatus.DRAFT
    category_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title,
            description=row.description or "",
            price=row.price or Decimal(0),
            level=CourseLevel(row.level or CourseLevel.BEGINNER.value),
            duration_hours=row.duration_hours or 0,
            status=CourseStatus(row.status or CourseStatus.DRAFT.value),
            category_id=row.category_id,
            instructor_id=row.instructor_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


@dataclass
class Lesson:
    """Ordered unit of course content."""

    course_id: UUID
    title: str
    lesson_type: LessonType
    order_index: int = 0
    description: str = ""
    video_url: str | None = None
    pdf_url: str | None = None
    content: str | None = None
    duration_minutes: int = 0
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def media_url(self) -> str | None:
        """URL of the media the lesson's player needs, if any."""
        if self.lesson_type == LessonType.VIDEO:
            return self.video_url
        if self.lesson_type == LessonType.PDF:
            return self.pdf_url
        return None

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        """Create Lesson from Cassandra row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            title=row.title,
            description=row.description or "",
            lesson_type=LessonType(row.lesson_type),
            order_index=row.order_index or 0,
            video_url=row.video_url,
            pdf_url=row.pdf_url,
            content=row.content,
            duration_minutes=row.duration_minutes or 0,
            created_at=row.created_at,
        )


@dataclass
class QuizQuestion:
    """Multiple-choice question; ``correct_answer`` is one of ``options``."""

    quiz_id: UUID
    question: str
    options: list[str]
    correct_answer: str
    order_index: int = 0
    explanation: str | None = None
    id: UUID = field(default_factory=uuid4)

    @classmethod
    def from_row(cls, row: Any) -> "QuizQuestion":
        """Create QuizQuestion from Cassandra row."""
        return cls(
            id=row.id,
            quiz_id=row.quiz_id,
            question=row.question,
            options=list(row.options or []),
            correct_answer=row.correct_answer,
            order_index=row.order_index or 0,
            explanation=row.explanation,
        )


@dataclass
class Quiz:
    """Quiz attached to a quiz-type lesson."""

    lesson_id: UUID
    title: str
    passing_score: int = 70
    time_limit_minutes: int | None = None
    description: str = ""
    id: UUID = field(default_factory=uuid4)

    @property
    def time_limit_seconds(self) -> int | None:
        """Countdown length, or None for untimed quizzes."""
        if not self.time_limit_minutes:
            return None
        return self.time_limit_minutes * 60

    @classmethod
    def from_row(cls, row: Any) -> "Quiz":
        """Create Quiz from Cassandra row."""
        return cls(
            id=row.id,
            lesson_id=row.lesson_id,
            title=row.title,
            description=row.description or "",
            passing_score=row.passing_score,
            time_limit_minutes=row.time_limit_minutes,
        )


def sort_by_order_index(items: list[Any]) -> list[Any]:
    """Stable ascending sort on ``order_index`` (ties keep insertion order)."""
    return sorted(items, key=lambda item: item.order_index)
