from .service import ServiceBase, ServiceCreate, ServiceUpdate, ServiceResponse
from .booking import BookingCreate, BookingUpdate, BookingStatusUpdate, BookingResponse
from .review import ReviewBase, ReviewCreate, ReviewResponse, CanReviewResponse
from .payment import PaymentIntentResponse, WebhookAck
from .provider import ProviderProfileResponse, TopRatedProvider
