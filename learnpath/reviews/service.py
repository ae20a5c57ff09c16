"""Course review service layer.

Business logic for:
- Adding a review (enrolled students only, one per course)
- Editing and deleting one's own review
- Listing a course's reviews with average rating and star distribution
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

import structlog

from learnpath.auth.context import StudentContext, require_context
from learnpath.notifications.service import NotificationCenter
from learnpath.storage import DuplicateRecordError, LearningStore, StorageError

from .models import MAX_RATING, MIN_RATING, Review
from .schemas import ReviewRequest


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ReviewError(Exception):
    """Base review error."""

    def __init__(self, message: str, code: str = "review_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(ReviewError):
    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class NotEnrolledError(ReviewError):
    """Only enrolled students may review a course."""

    def __init__(self, message: str = "You must be enrolled to leave a review"):
        super().__init__(message, "not_enrolled")


class AlreadyReviewedError(ReviewError):
    def __init__(self, message: str = "You have already reviewed this course"):
        super().__init__(message, "already_reviewed")


class ReviewNotFoundError(ReviewError):
    """Unknown review, or one written by someone else."""

    def __init__(self, message: str = "Review not found"):
        super().__init__(message, "review_not_found")


# ==============================================================================
# Rating Statistics
# ==============================================================================


def average_rating(ratings: list[int]) -> float:
    """Mean rating to one decimal, rounding .05 up; 0.0 without ratings.

    >>> average_rating([5, 4, 4])
    4.3
    >>> average_rating([4, 5])
    4.5
    >>> average_rating([])
    0.0
    """
    if not ratings:
        return 0.0
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


@dataclass
class CourseReviews:
    """A course's reviews, newest first, with their statistics."""

    course_id: UUID
    reviews: list[Review]
    average_rating: float = 0.0
    rating_distribution: dict[str, int] = field(default_factory=dict)

    @property
    def total_reviews(self) -> int:
        return len(self.reviews)


# ==============================================================================
# Review Service
# ==============================================================================


class ReviewService:
    """Service for course reviews."""

    def __init__(self, store: LearningStore, notifications: NotificationCenter):
        self.store = store
        self.notifications = notifications

    async def list_reviews(self, course_id: UUID) -> CourseReviews:
        """Reviews of a course with average rating and star distribution."""
        reviews = await self.store.list_reviews(course_id)
        reviews.sort(key=lambda r: r.created_at, reverse=True)

        distribution = {str(stars): 0 for stars in range(MIN_RATING, MAX_RATING + 1)}
        for review in reviews:
            distribution[str(review.rating)] += 1

        return CourseReviews(
            course_id=course_id,
            reviews=reviews,
            average_rating=average_rating([r.rating for r in reviews]),
            rating_distribution=distribution,
        )

    async def add_review(
        self, ctx: StudentContext | None, course_id: UUID, data: ReviewRequest
    ) -> Review:
        """Review a course the student is enrolled in.

        Raises:
            AuthRequiredError: If there is no authenticated student
            CourseNotFoundError: If the course does not exist
            NotEnrolledError: If the student is not enrolled
            AlreadyReviewedError: If the student already reviewed the course
            StorageError: If the store fails
        """
        ctx = require_context(ctx)

        if await self.store.get_course(course_id) is None:
            raise CourseNotFoundError
        if await self.store.get_enrollment(ctx.user_id, course_id) is None:
            raise NotEnrolledError
        if await self.store.get_student_review(course_id, ctx.user_id) is not None:
            raise AlreadyReviewedError

        review = Review(
            course_id=course_id,
            student_id=ctx.user_id,
            rating=data.rating,
            comment=data.comment,
        )
        try:
            await self.store.insert_review(review)
        except DuplicateRecordError as e:
            raise AlreadyReviewedError from e
        except StorageError as e:
            await self._report_failure(ctx, "add_review", e, "Failed to submit review")
            raise

        logger.info(
            "review_added",
            review_id=str(review.id),
            course_id=str(course_id),
            student_id=str(ctx.user_id),
            rating=review.rating,
        )
        await self.notifications.success(ctx.user_id, "Review submitted successfully")
        return review

    async def update_review(
        self, ctx: StudentContext | None, review_id: UUID, data: ReviewRequest
    ) -> Review:
        """Change rating and comment of the student's own review.

        Raises:
            ReviewNotFoundError: If unknown or written by someone else
        """
        ctx = require_context(ctx)
        review = await self._get_own_review(ctx, review_id)

        review.rating = data.rating
        review.comment = data.comment
        review.updated_at = datetime.now(UTC)
        try:
            await self.store.update_review(review)
        except StorageError as e:
            await self._report_failure(
                ctx, "update_review", e, "Failed to update review"
            )
            raise

        logger.info("review_updated", review_id=str(review_id), rating=review.rating)
        await self.notifications.success(ctx.user_id, "Review updated successfully")
        return review

    async def delete_review(self, ctx: StudentContext | None, review_id: UUID) -> None:
        """Delete the student's own review.

        Raises:
            ReviewNotFoundError: If unknown or written by someone else
        """
        ctx = require_context(ctx)
        review = await self._get_own_review(ctx, review_id)

        try:
            await self.store.delete_review(review)
        except StorageError as e:
            await self._report_failure(
                ctx, "delete_review", e, "Failed to delete review"
            )
            raise

        logger.info(
            "review_deleted", review_id=str(review_id), course_id=str(review.course_id)
        )
        await self.notifications.success(ctx.user_id, "Review deleted successfully")

    # ==========================================================================
    # Helpers
    # ==========================================================================

    async def _get_own_review(self, ctx: StudentContext, review_id: UUID) -> Review:
        review = await self.store.get_review(review_id)
        if review is None or review.student_id != ctx.user_id:
            raise ReviewNotFoundError
        return review

    async def _report_failure(
        self,
        ctx: StudentContext,
        operation: str,
        error: StorageError,
        message: str,
    ) -> None:
        logger.error(
            "review_persistence_failed",
            operation=operation,
            student_id=str(ctx.user_id),
            error=error.message,
        )
        await self.notifications.error(ctx.user_id, message, error.code)
