from pydantic import BaseModel, Field
from typing import Optional, Annotated
from datetime import datetime


class ReviewBase(BaseModel):
  rating: Annotated[int, Field(ge=1, le=5)]
  comment: Optional[str] = None


class ReviewCreate(ReviewBase):
  """Owner → provider review payload (booking-bound)."""
  pass


class ReviewResponse(ReviewBase):
  id: int
  booking_id: str
  service_id: int
  owner_id: int
  provider_id: int
  created_at: datetime

  model_config = {"from_attributes": True}


class CanReviewResponse(BaseModel):
  booking_id: str
  can_review: bool
