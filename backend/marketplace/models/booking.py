# backend/marketplace/models/booking.py

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, Enum as SAEnum, text
from sqlalchemy.orm import relationship

from .base import BaseModel
from .booking_status import BookingStatus, PaymentStatus


def _new_booking_id() -> str:
    return str(uuid.uuid4())


class Booking(BaseModel):
    __tablename__ = "bookings"
    __table_args__ = (
        # At most one active booking per service and start time
        Index(
            "uq_bookings_active_slot",
            "service_id",
            "booking_time",
            unique=True,
            sqlite_where=text("status != 'CANCELLED'"),
            postgresql_where=text("status != 'CANCELLED'"),
        ),
    )

    id             = Column(String(36), primary_key=True, default=_new_booking_id)
    owner_id       = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    service_id     = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)
    booking_time   = Column(DateTime, nullable=False, index=True)
    status         = Column(
        SAEnum(BookingStatus, name="bookingstatus"),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )
    payment_status = Column(
        SAEnum(PaymentStatus, name="paymentstatus"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    # Gateway reference; written once by a conditional update
    payment_intent_id = Column(String, nullable=True, unique=True)
    notes          = Column(Text, nullable=True)

    # Relationships
    owner   = relationship("User", foreign_keys=[owner_id], back_populates="bookings_as_owner")
    service = relationship("Service", back_populates="bookings")
    review  = relationship("Review", back_populates="booking", uselist=False)

    @property
    def provider_id(self):
        """Provider is derived through the booked service."""
        return self.service.provider_id if self.service is not None else None
