from .crud_booking import booking
from .crud_provider import provider
from .crud_review import review
from .crud_service import service

# Usage: `crud.booking.get_booking(db, booking_id)`
