"""Pydantic schemas for course reviews."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import MAX_RATING, MIN_RATING, Review


# ==============================================================================
# Request Schemas
# ==============================================================================


class ReviewRequest(BaseModel):
    """Create or edit a review."""

    rating: int = Field(..., ge=MIN_RATING, le=MAX_RATING, description="1 to 5 stars")
    comment: str = Field(..., min_length=1, max_length=5000)

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, v: str) -> str:
        """Strip whitespace and reject blank comments."""
        v = v.strip()
        if not v:
            msg = "Comment cannot be empty"
            raise ValueError(msg)
        return v


# ==============================================================================
# Response Schemas
# ==============================================================================


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    student_id: UUID
    rating: int
    comment: str
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, review: Review) -> "ReviewResponse":
        return cls(**review.to_dict())


class CourseReviewsResponse(BaseModel):
    """Reviews of a course, newest first, with rating statistics."""

    course_id: UUID
    items: list[ReviewResponse]
    total_reviews: int = 0
    average_rating: float = 0.0
    rating_distribution: dict[str, int] = Field(
        default_factory=lambda: {"1": 0, "2": 0, "3": 0, "4": 0, "5": 0}
    )
