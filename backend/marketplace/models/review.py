from sqlalchemy import Column, Integer, DateTime, String, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from .base import BaseModel


class Review(BaseModel):
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # At most one review per booking
    booking_id  = Column(String(36), ForeignKey("bookings.id"), nullable=False, unique=True)
    service_id  = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)
    owner_id    = Column(Integer, ForeignKey("users.id"), nullable=False)
    provider_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    rating      = Column(Integer, nullable=False)
    comment     = Column(Text, nullable=True)
    created_at  = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    #   Each Review is attached to exactly one Booking
    booking = relationship(
        "Booking",
        back_populates="review"
    )

    #   Each Review is attached to exactly one Service
    service = relationship(
        "Service",
        back_populates="reviews"
    )

    owner = relationship("User", foreign_keys=[owner_id])
