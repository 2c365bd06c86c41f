# backend/marketplace/models/provider_profile.py

from sqlalchemy import Column, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class ProviderProfile(BaseModel):
    """Public profile of a service provider."""

    __tablename__ = "provider_profiles"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        nullable=False,
        index=True,
    )
    bio = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    # Mean of the provider's per-service averages, kept by rating aggregation
    overall_average_rating = Column(Float, nullable=False, default=0.0)

    user = relationship("User", back_populates="provider_profile")
