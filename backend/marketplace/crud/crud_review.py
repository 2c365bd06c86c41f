from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import models
from ..utils.errors import ConflictError


class CRUDReview:
    def get_review_by_booking(self, db: Session, booking_id: str) -> Optional[models.Review]:
        # booking_id is unique, so there is at most one
        return db.query(models.Review).filter(models.Review.booking_id == booking_id).first()

    def get_reviews_by_service(
        self, db: Session, service_id: int, skip: int = 0, limit: int = 100
    ) -> List[models.Review]:
        return (
            db.query(models.Review)
            .filter(models.Review.service_id == service_id)
            .order_by(models.Review.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_reviews_by_provider(
        self, db: Session, provider_id: int, skip: int = 0, limit: int = 100
    ) -> List[models.Review]:
        return (
            db.query(models.Review)
            .filter(models.Review.provider_id == provider_id)
            .order_by(models.Review.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def create_review(self, db: Session, review: models.Review) -> models.Review:
        """Insert ``review``; a second review for the same booking is a conflict."""
        db.add(review)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError(f"booking {review.booking_id} already reviewed") from exc
        db.refresh(review)
        return review


review = CRUDReview()
