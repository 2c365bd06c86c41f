from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session
from typing import List, Any

from .. import crud
from ..database import get_db
from ..models.user import User
from ..schemas.review import ReviewCreate, ReviewResponse, CanReviewResponse
from ..services import review_gate
from ..services.rating_aggregation import refresh_ratings_for_review
from .dependencies import get_current_user
from ..utils import error_response, failure_response

router = APIRouter(tags=["Reviews"], default_response_class=ORJSONResponse)


@router.post(
    "/booking/{booking_id}",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_review_for_booking(
    *,
    db: Session = Depends(get_db),
    booking_id: str = Path(..., title="The ID of the booking to review"),
    review_in: ReviewCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Create a review for a specific booking.
    Only the owner who made the booking can review it, once, and only after it's completed.
    Service and provider ratings are refreshed after the response is sent.
    """

    def _schedule_rating_refresh(review) -> None:
        background_tasks.add_task(refresh_ratings_for_review, review.service_id, review.provider_id)

    result = review_gate.create_review(
        db,
        booking_id,
        current_user.id,
        review_in.rating,
        review_in.comment,
        on_created=_schedule_rating_refresh,
    )
    if not result.ok:
        raise failure_response(result)
    return result.value


@router.get("/booking/{booking_id}/can-review", response_model=CanReviewResponse)
def can_review_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """Whether the current user may leave a review for this booking."""
    return CanReviewResponse(
        booking_id=booking_id,
        can_review=review_gate.can_review(db, booking_id, current_user.id),
    )


@router.get("/booking/{booking_id}", response_model=ReviewResponse)
def get_review(booking_id: str, db: Session = Depends(get_db)) -> Any:
    """
    Get the review left for a booking.
    """
    review = crud.review.get_review_by_booking(db, booking_id)
    if not review:
        raise error_response(
            "Review not found.",
            {"booking_id": "not_found"},
            status.HTTP_404_NOT_FOUND,
        )
    return review


@router.get("/service/{service_id}", response_model=List[ReviewResponse])
def list_reviews_for_service(
    service_id: int,
    db: Session = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
) -> Any:
    """
    List all reviews for a specific service, newest first.
    """
    service = crud.service.get_service(db, service_id)
    if not service:
        raise error_response(
            "Service not found.",
            {"service_id": "not_found"},
            status.HTTP_404_NOT_FOUND,
        )
    return crud.review.get_reviews_by_service(db, service_id, skip=skip, limit=limit)


@router.get("/provider/{provider_id}", response_model=List[ReviewResponse])
def list_reviews_for_provider(
    provider_id: int,
    db: Session = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
) -> Any:
    # Unknown providers simply have no reviews
    return crud.review.get_reviews_by_provider(db, provider_id, skip=skip, limit=limit)
