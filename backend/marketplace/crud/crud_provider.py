from sqlalchemy import desc, func
from sqlalchemy.orm import Session, selectinload
from typing import List, Optional, Tuple

from .. import models
from ..models.user import UserRole


class CRUDProvider:
    def get_provider(self, db: Session, user_id: int) -> Optional[models.User]:
        return (
            db.query(models.User)
            .options(
                selectinload(models.User.provider_profile),
                selectinload(models.User.services),
            )
            .filter(
                models.User.id == user_id,
                models.User.role == UserRole.PROVIDER,
                models.User.is_active.is_(True),
            )
            .first()
        )

    def get_top_rated(self, db: Session, limit: int = 10) -> List[Tuple[models.User, float, int]]:
        """Active providers with at least one review, best mean review rating first.

        Ties go to the provider with more reviews, then the lower id.
        """
        average_rating = func.avg(models.Review.rating).label("average_rating")
        total_reviews = func.count(models.Review.id).label("total_reviews")
        return (
            db.query(models.User, average_rating, total_reviews)
            .join(models.Review, models.Review.provider_id == models.User.id)
            .options(
                selectinload(models.User.provider_profile),
                selectinload(models.User.services),
            )
            .filter(
                models.User.role == UserRole.PROVIDER,
                models.User.is_active.is_(True),
            )
            .group_by(models.User.id)
            .order_by(desc(average_rating), desc(total_reviews), models.User.id)
            .limit(limit)
            .all()
        )


provider = CRUDProvider()
