from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session
from typing import Any, List

from .. import crud
from ..database import get_db
from ..models.user import User
from ..schemas.provider import ProviderProfileResponse, TopRatedProvider
from ..schemas.service import ServiceResponse
from ..utils import error_response

router = APIRouter(tags=["providers"], default_response_class=ORJSONResponse)


def _profile_fields(user: User) -> dict:
    profile = user.provider_profile
    return {
        "user_id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "location": profile.location if profile else None,
        "overall_average_rating": profile.overall_average_rating if profile else 0.0,
    }


@router.get("/top-rated", response_model=List[TopRatedProvider])
def list_top_rated_providers(
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=50),
) -> Any:
    """
    Providers with at least one review, ordered by their mean review rating.
    """
    return [
        TopRatedProvider(
            **_profile_fields(user),
            average_rating=float(average_rating),
            total_reviews=total_reviews,
            service_count=len(user.services),
        )
        for user, average_rating, total_reviews in crud.provider.get_top_rated(db, limit=limit)
    ]


@router.get("/{provider_id}", response_model=ProviderProfileResponse)
def read_provider_profile(provider_id: int, db: Session = Depends(get_db)) -> Any:
    """Public profile of a provider with the services they offer."""
    user = crud.provider.get_provider(db, provider_id)
    if not user:
        raise error_response(
            "Provider not found.",
            {"provider_id": "not_found"},
            status.HTTP_404_NOT_FOUND,
        )
    return ProviderProfileResponse(
        **_profile_fields(user),
        bio=user.provider_profile.bio if user.provider_profile else None,
        services=[ServiceResponse.model_validate(s) for s in sorted(user.services, key=lambda s: s.id)],
    )
