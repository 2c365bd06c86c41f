from pydantic import BaseModel
from typing import List, Optional

from .service import ServiceResponse


class ProviderProfileResponse(BaseModel):
    user_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    overall_average_rating: float = 0.0
    services: List[ServiceResponse] = []


class TopRatedProvider(BaseModel):
    user_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    location: Optional[str] = None
    overall_average_rating: float = 0.0
    # Mean of every review the provider received
    average_rating: float
    total_reviews: int
    service_count: int
