from .user import User, UserRole
from .provider_profile import ProviderProfile
from .service import Service, ServiceType
from .booking import Booking
from .booking_status import BookingStatus, PaymentStatus, TERMINAL_STATUSES
from .review import Review

__all__ = [
    "User",
    "UserRole",
    "ProviderProfile",
    "Service",
    "ServiceType",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "TERMINAL_STATUSES",
    "Review",
]
