from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from ..models.booking_status import BookingStatus, PaymentStatus
from .service import ServiceResponse


# Properties to receive on creation (from an owner)
class BookingCreate(BaseModel):
    booking_time: datetime
    notes: Optional[str] = None


# Owner edits while the booking is still pending
class BookingUpdate(BaseModel):
    booking_time: Optional[datetime] = None
    notes: Optional[str] = None


# Status change request; payment status is deliberately not writable here
class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingResponse(BaseModel):
    id: str
    owner_id: int
    service_id: int
    provider_id: Optional[int] = None
    booking_time: datetime
    status: BookingStatus
    payment_status: PaymentStatus
    payment_intent_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    service: Optional[ServiceResponse] = None

    model_config = {
        "from_attributes": True
    }
