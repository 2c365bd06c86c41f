"""Keeps service and provider average ratings in step with reviews.

Runs as a fire-and-forget background task after a review is created, in
its own session. A failure here is logged and never reaches the client.
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..database import get_db_session

logger = logging.getLogger(__name__)


def recalculate_service_rating(db: Session, service_id: int) -> float:
    average = (
        db.query(func.avg(models.Review.rating))
        .filter(models.Review.service_id == service_id)
        .scalar()
    )
    average = float(average or 0.0)
    db.query(models.Service).filter(models.Service.id == service_id).update(
        {models.Service.average_rating: average}, synchronize_session=False
    )
    return average


def recalculate_provider_rating(db: Session, provider_id: int) -> Optional[float]:
    """Overall rating is the plain mean of the provider's per-service averages."""
    averages = [
        row[0]
        for row in db.query(models.Service.average_rating)
        .filter(models.Service.provider_id == provider_id)
        .all()
    ]
    if not averages:
        return None
    overall = sum(averages) / len(averages)
    profile = db.get(models.ProviderProfile, provider_id)
    if profile is None:
        profile = models.ProviderProfile(user_id=provider_id)
        db.add(profile)
    profile.overall_average_rating = overall
    return overall


def recalculate_ratings(db: Session, service_id: int, provider_id: int) -> None:
    service_avg = recalculate_service_rating(db, service_id)
    provider_avg = recalculate_provider_rating(db, provider_id)
    db.commit()
    logger.info(
        "ratings recalculated service=%s avg=%.2f provider=%s overall=%s",
        service_id,
        service_avg,
        provider_id,
        f"{provider_avg:.2f}" if provider_avg is not None else "n/a",
    )


def refresh_ratings_for_review(service_id: int, provider_id: int) -> None:
    """Background-task entry point."""
    try:
        with get_db_session() as db:
            recalculate_ratings(db, service_id, provider_id)
    except Exception:
        logger.exception(
            "rating aggregation failed service=%s provider=%s", service_id, provider_id
        )
