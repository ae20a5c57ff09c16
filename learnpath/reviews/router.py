"""Course review API endpoints.

Provides routes for:
- Listing a course's reviews with rating statistics (public)
- Adding, editing and deleting one's own review
"""

from uuid import UUID

from fastapi import APIRouter, status

from learnpath.auth.dependencies import CurrentUser

from .dependencies import ReviewServiceDep, handle_review_error
from .schemas import CourseReviewsResponse, ReviewRequest, ReviewResponse
from .service import ReviewError


router = APIRouter(prefix="/v1/reviews", tags=["reviews"])


@router.get(
    "/courses/{course_id}",
    response_model=CourseReviewsResponse,
    summary="List course reviews",
)
async def list_course_reviews(
    course_id: UUID,
    review_service: ReviewServiceDep,
) -> CourseReviewsResponse:
    """Reviews newest first, with average rating and star distribution."""
    summary = await review_service.list_reviews(course_id)
    return CourseReviewsResponse(
        course_id=course_id,
        items=[ReviewResponse.from_entity(r) for r in summary.reviews],
        total_reviews=summary.total_reviews,
        average_rating=summary.average_rating,
        rating_distribution=summary.rating_distribution,
    )


@router.post(
    "/courses/{course_id}",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Review a course",
)
async def add_review(
    course_id: UUID,
    data: ReviewRequest,
    review_service: ReviewServiceDep,
    user: CurrentUser,
) -> ReviewResponse:
    """Leave a review; requires an enrollment, one review per course."""
    try:
        review = await review_service.add_review(user, course_id, data)
    except ReviewError as e:
        raise handle_review_error(e) from e
    return ReviewResponse.from_entity(review)


@router.put(
    "/{review_id}",
    response_model=ReviewResponse,
    summary="Edit my review",
)
async def update_review(
    review_id: UUID,
    data: ReviewRequest,
    review_service: ReviewServiceDep,
    user: CurrentUser,
) -> ReviewResponse:
    try:
        review = await review_service.update_review(user, review_id, data)
    except ReviewError as e:
        raise handle_review_error(e) from e
    return ReviewResponse.from_entity(review)


@router.delete(
    "/{review_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete my review",
)
async def delete_review(
    review_id: UUID,
    review_service: ReviewServiceDep,
    user: CurrentUser,
) -> None:
    try:
        await review_service.delete_review(user, review_id)
    except ReviewError as e:
        raise handle_review_error(e) from e
