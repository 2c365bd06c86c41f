"""Review eligibility: one review per completed booking, by its owner."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from .. import crud, models
from ..models.booking_status import BookingStatus
from ..utils.errors import ConflictError
from .results import ErrorKind, Failure, Result, Success

logger = logging.getLogger(__name__)

ReviewListener = Callable[[models.Review], None]


def _ineligibility_reason(db: Session, booking: Optional[models.Booking], actor_id: int) -> Optional[str]:
    if booking is None:
        return "booking_not_found"
    if booking.owner_id != actor_id:
        return "not_owner"
    if BookingStatus(booking.status) != BookingStatus.COMPLETED:
        return "not_completed"
    if crud.review.get_review_by_booking(db, booking.id) is not None:
        return "already_reviewed"
    return None


def can_review(db: Session, booking_id: str, actor_id: int) -> bool:
    """Predicate behind the "leave a review" action. Never fails."""
    booking = crud.booking.get_booking(db, booking_id)
    return _ineligibility_reason(db, booking, actor_id) is None


def create_review(
    db: Session,
    booking_id: str,
    actor_id: int,
    rating: int,
    comment: Optional[str] = None,
    on_created: Optional[ReviewListener] = None,
) -> Result[models.Review]:
    """Create the single review for a completed booking.

    ``on_created`` is the rating-aggregation hook; it is called after the
    insert has committed and its outcome does not affect the result.
    """
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        return Failure(
            ErrorKind.INVALID_RATING,
            "Rating must be an integer between 1 and 5.",
            {"rating": "out_of_range"},
        )

    booking = crud.booking.get_booking(db, booking_id)
    reason = _ineligibility_reason(db, booking, actor_id)
    if reason is not None:
        logger.info("review rejected booking=%s actor=%s reason=%s", booking_id, actor_id, reason)
        return Failure(
            ErrorKind.NOT_ELIGIBLE,
            "This booking cannot be reviewed.",
            {"booking_id": reason},
        )

    review = models.Review(
        booking_id=booking.id,
        service_id=booking.service_id,
        owner_id=booking.owner_id,
        provider_id=booking.provider_id,
        rating=rating,
        comment=comment,
    )
    try:
        review = crud.review.create_review(db, review)
    except ConflictError:
        logger.info("review insert lost race booking=%s", booking_id)
        return Failure(
            ErrorKind.NOT_ELIGIBLE,
            "This booking cannot be reviewed.",
            {"booking_id": "already_reviewed"},
        )

    logger.info("review created id=%s booking=%s rating=%s", review.id, booking_id, rating)
    if on_created is not None:
        try:
            on_created(review)
        except Exception:
            logger.exception("review listener failed for booking=%s", booking_id)
    return Success(review)
