"""Pydantic schemas for course authoring.

Request and response models for:
- Courses: create, update, review
- Lessons: create, update
- Quizzes and questions
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Course, CourseLevel, CourseStatus, Lesson, LessonType, Quiz, QuizQuestion


# ==============================================================================
# Course Schemas
# ==============================================================================


class CreateCourseRequest(BaseModel):
    """Course creation request."""

    title: str = Field(..., min_length=3, max_length=200, description="Course title")
    description: str = Field("", max_length=5000, description="Course description")
    price: Decimal = Field(Decimal(0), ge=0, description="Course price (0 = free)")
    level: CourseLevel = CourseLevel.BEGINNER
    duration_hours: int = Field(0, ge=0)
    category_id: UUID | None = None


class UpdateCourseRequest(BaseModel):
    """Course update request."""

    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, max_length=5000)
    price: Decimal | None = Field(None, ge=0)
    level: CourseLevel | None = None
    duration_hours: int | None = Field(None, ge=0)
    category_id: UUID | None = None


class CourseResponse(BaseModel):
    """Course response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str
    price: Decimal
    level: CourseLevel
    duration_hours: int
    status: CourseStatus
    instructor_id: UUID
    category_id: UUID | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, course: Course) -> "CourseResponse":
        return cls.model_validate(course)


class CourseListResponse(BaseModel):
    items: list[CourseResponse]
    total: int


# ==============================================================================
# Lesson Schemas
# ==============================================================================


class CreateLessonRequest(BaseModel):
    """Lesson creation request. Without ``order_index`` the lesson goes last."""

    title: str = Field(..., min_length=1, max_length=200)
    lesson_type: LessonType
    order_index: int | None = Field(None, ge=0)
    description: str = ""
    video_url: str | None = Field(None, max_length=500)
    pdf_url: str | None = Field(None, max_length=500)
    content: str | None = None
    duration_minutes: int = Field(0, ge=0)


class UpdateLessonRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    lesson_type: LessonType | None = None
    order_index: int | None = Field(None, ge=0)
    description: str | None = None
    video_url: str | None = Field(None, max_length=500)
    pdf_url: str | None = Field(None, max_length=500)
    content: str | None = None
    duration_minutes: int | None = Field(None, ge=0)


class LessonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    title: str
    lesson_type: LessonType
    order_index: int
    description: str
    video_url: str | None = None
    pdf_url: str | None = None
    content: str | None = None
    duration_minutes: int
    created_at: datetime

    @classmethod
    def from_entity(cls, lesson: Lesson) -> "LessonResponse":
        return cls.model_validate(lesson)


class LessonListResponse(BaseModel):
    items: list[LessonResponse]
    total: int


# ==============================================================================
# Quiz Schemas
# ==============================================================================


class QuizRequest(BaseModel):
    """Create or update the quiz of a quiz lesson."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    passing_score: int = Field(70, ge=0, le=100, description="Minimum score to pass")
    time_limit_minutes: int | None = Field(
        None, gt=0, description="Countdown length; None for untimed"
    )


class QuestionRequest(BaseModel):
    """Question with its options; blank options are dropped."""

    question: str = Field(..., min_length=1)
    options: list[str] = Field(..., min_length=2)
    correct_answer: str
    order_index: int | None = Field(None, ge=0)
    explanation: str | None = None


class QuestionResponse(BaseModel):
    """Question as seen by its author, including the correct answer."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    question: str
    options: list[str]
    correct_answer: str
    order_index: int
    explanation: str | None = None


class QuizResponse(BaseModel):
    id: UUID
    lesson_id: UUID
    title: str
    description: str
    passing_score: int
    time_limit_minutes: int | None = None
    questions: list[QuestionResponse] = Field(default_factory=list)

    @classmethod
    def from_entity(
        cls, quiz: Quiz, questions: list[QuizQuestion] | None = None
    ) -> "QuizResponse":
        return cls(
            id=quiz.id,
            lesson_id=quiz.lesson_id,
            title=quiz.title,
            description=quiz.description,
            passing_score=quiz.passing_score,
            time_limit_minutes=quiz.time_limit_minutes,
            questions=[QuestionResponse.model_validate(q) for q in questions or []],
        )
