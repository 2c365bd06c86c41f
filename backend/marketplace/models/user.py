# backend/marketplace/models/user.py

from sqlalchemy import Boolean, Column, Integer, String, Enum
from sqlalchemy.orm import relationship
from .base import BaseModel
import enum


class UserRole(str, enum.Enum):
    """Enumeration of all supported user roles."""

    OWNER = "OWNER"
    PROVIDER = "PROVIDER"
    ADMIN = "ADMIN"


class User(BaseModel):
    __tablename__ = "users"

    id         = Column(Integer, primary_key=True, index=True)
    email      = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=True)
    last_name  = Column(String, nullable=True)
    role       = Column(Enum(UserRole), nullable=False, default=UserRole.OWNER)
    is_active  = Column(Boolean, default=True, nullable=False)

    # ↔–↔ If this user is a provider, they get exactly one profile here
    provider_profile = relationship(
        "ProviderProfile",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    services = relationship(
        "Service",
        back_populates="provider",
        cascade="all, delete-orphan",
    )

    # ↔–↔ All bookings where this user is the pet owner
    bookings_as_owner = relationship(
        "Booking",
        foreign_keys="Booking.owner_id",
        back_populates="owner",
    )
