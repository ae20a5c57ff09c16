"""Pydantic schemas for student progress tracking.

Request and response models for:
- Course enrollment
- Lesson completion (manual checkbox)
- Progress queries
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import CompletionState, Enrollment


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll in a course."""

    course_id: UUID = Field(..., description="Course UUID")


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    course_id: UUID
    progress_percentage: int = Field(ge=0, le=100)
    enrolled_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        """Create response from entity."""
        return cls(**entity.to_dict())


class EnrollmentListResponse(BaseModel):
    """List of user enrollments."""

    items: list[EnrollmentResponse]
    total: int


# ==============================================================================
# Lesson Completion Schemas
# ==============================================================================


class LessonCompletionResponse(BaseModel):
    """Result of marking or unmarking a lesson.

    ``progress_percentage`` is None when the course percentage could not be
    written (not enrolled, or a storage failure reported via notifications).
    """

    lesson_id: UUID
    course_id: UUID
    state: CompletionState
    progress_percentage: int | None = None


# ==============================================================================
# Course Progress Schemas
# ==============================================================================


class CourseProgressResponse(BaseModel):
    """Progress of the current student in one course."""

    course_id: UUID
    enrolled: bool
    stored_percentage: int | None = Field(
        None, description="Percentage last written on the enrollment"
    )
    computed_percentage: int = Field(description="Percentage computed from completions")
    completed_lesson_ids: list[UUID] = Field(default_factory=list)
    lessons_total: int


class RecomputeResponse(BaseModel):
    """Result of an explicit recompute."""

    course_id: UUID
    progress_percentage: int | None = None
