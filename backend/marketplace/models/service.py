# backend/marketplace/models/service.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    Float,
    ForeignKey,
    Text,
    Enum as SQLAlchemyEnum,
)
from sqlalchemy.orm import relationship
from .base import BaseModel
from ..core.config import settings
import enum


class ServiceType(str, enum.Enum):
    """Kinds of pet care offered on the marketplace."""

    WALKING = "WALKING"
    GROOMING = "GROOMING"
    SITTING = "SITTING"
    TRAINING = "TRAINING"
    VETERINARY = "VETERINARY"
    OTHER = "OTHER"


class Service(BaseModel):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_type = Column(
        SQLAlchemyEnum(
            ServiceType,
            values_callable=lambda enum: [e.value for e in enum],
            native_enum=False,
        ),
        nullable=False,
        default=ServiceType.OTHER,
    )
    title = Column(String, index=True, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default=lambda: settings.DEFAULT_CURRENCY)
    # Mean review rating, kept by rating aggregation
    average_rating = Column(Float, nullable=False, default=0.0)

    provider = relationship("User", back_populates="services")
    bookings = relationship("Booking", back_populates="service")
    reviews = relationship("Review", back_populates="service")
