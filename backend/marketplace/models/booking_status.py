import enum


class BookingStatus(str, enum.Enum):
    """Lifecycle of a booking. COMPLETED and CANCELLED are terminal."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, enum.Enum):
    """Payment axis of a booking, only moved by the gateway webhook."""
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})
