"""Database models for course reviews.

Cassandra table definitions for:
- Reviews: one row per (course, student), 1-5 star rating plus a comment
- Reviews by id: lookup for edits and deletes addressed by review id
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from learnpath.progress.models import ensure_utc_aware


# ==============================================================================
# Constants
# ==============================================================================

MIN_RATING = 1
MAX_RATING = 5


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# (course_id, student_id) is the primary key: one review per student per course
REVIEWS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.reviews (
    course_id UUID,
    student_id UUID,
    id UUID,
    rating TINYINT,
    comment TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((course_id), student_id)
)
"""

REVIEWS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.reviews_by_id (
    id UUID PRIMARY KEY,
    course_id UUID,
    student_id UUID
)
"""

REVIEWS_TABLES_CQL = [
    REVIEWS_TABLE_CQL,
    REVIEWS_BY_ID_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Review:
    """A student's review of a course they are enrolled in.

    Attributes:
        id: Review UUID
        course_id: Reviewed course
        student_id: Author
        rating: Stars, 1 to 5
        comment: Free text, never blank
        created_at: When the review was submitted
        updated_at: Last edit, None if never edited
    """

    def __init__(
        self,
        course_id: UUID,
        student_id: UUID,
        rating: int,
        comment: str,
        id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.student_id = student_id
        self.rating = rating
        self.comment = comment
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Review":
        """Create Review instance from Cassandra row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            student_id=row.student_id,
            rating=row.rating,
            comment=row.comment or "",
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "course_id": self.course_id,
            "student_id": self.student_id,
            "rating": self.rating,
            "comment": self.comment,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Review course={self.course_id} student={self.student_id} "
            f"{self.rating}/{MAX_RATING}>"
        )
