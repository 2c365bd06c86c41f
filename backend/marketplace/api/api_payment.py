import logging
from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session
from typing import Any, Optional

from ..database import get_db
from ..models.booking_status import PaymentStatus
from ..models.user import User
from ..schemas.payment import PaymentIntentResponse, WebhookAck
from ..services import payments
from ..services.booking_lifecycle import Actor
from ..services.results import ErrorKind
from ..services.stripe_gateway import PaymentGateway, WebhookSignatureError
from ..utils import error_response, failure_response
from .dependencies import get_current_owner, get_payment_gateway

logger = logging.getLogger(__name__)

# Mounted twice by main.py: the intent route under /bookings, the webhook under /payments
booking_router = APIRouter(tags=["payments"], default_response_class=ORJSONResponse)
router = APIRouter(tags=["payments"], default_response_class=ORJSONResponse)

# Stripe event type -> payment outcome it records
WEBHOOK_OUTCOMES = {
    "payment_intent.succeeded": PaymentStatus.PAID,
    "payment_intent.payment_failed": PaymentStatus.FAILED,
}


@booking_router.post(
    "/{booking_id}/create-payment-intent",
    response_model=PaymentIntentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_payment_intent(
    booking_id: str,
    db: Session = Depends(get_db),
    current_owner: User = Depends(get_current_owner),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> Any:
    """Start payment for a CONFIRMED booking.

    Returns the client secret the frontend hands to Stripe Elements. The
    booking is marked paid later, when the gateway's webhook arrives.
    """
    result = payments.create_payment_intent(db, booking_id, Actor.from_user(current_owner), gateway)
    if not result.ok:
        raise failure_response(result)
    intent = result.value
    return PaymentIntentResponse(
        booking_id=intent.booking_id,
        payment_intent_id=intent.payment_intent_id,
        client_secret=intent.client_secret,
        amount=intent.amount,
        platform_fee=intent.platform_fee,
        provider_amount=intent.provider_amount,
        currency=intent.currency,
    )


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    stripe_signature: Optional[str] = Header(default=None),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> Any:
    """Handle Stripe webhook events.

    - Verifies the ``Stripe-Signature`` header over the raw request body.
    - ``payment_intent.succeeded`` marks the booking PAID and
      ``payment_intent.payment_failed`` marks it FAILED.
    - Idempotent: redelivered events are acknowledged without changes.
    - Other event types are acknowledged and ignored.
    """
    raw = await request.body()
    try:
        event = gateway.verify_webhook(raw, stripe_signature)
    except WebhookSignatureError as exc:
        logger.warning("Stripe webhook rejected: %s", exc)
        raise error_response(
            "Invalid webhook signature.",
            {"signature": "invalid"},
            status.HTTP_400_BAD_REQUEST,
        )

    event_type = event.get("type")
    outcome = WEBHOOK_OUTCOMES.get(event_type)
    if outcome is None:
        logger.info("Ignoring Stripe event %s (%s)", event.get("id"), event_type)
        return WebhookAck()

    intent = (event.get("data") or {}).get("object") or {}
    intent_id = intent.get("id")
    if not intent_id:
        raise error_response(
            "Webhook event has no payment intent.",
            {"data.object.id": "required"},
            status.HTTP_400_BAD_REQUEST,
        )

    result = payments.apply_payment_outcome(db, intent_id, outcome)
    if not result.ok:
        if result.kind == ErrorKind.NOT_FOUND:
            # Intents created outside this platform share the Stripe account
            logger.warning("Stripe event %s for unknown intent %s", event.get("id"), intent_id)
            return WebhookAck()
        if result.kind == ErrorKind.ALREADY_PROCESSED:
            return WebhookAck()
        raise failure_response(result)

    logger.info("Stripe event %s applied: booking %s payment %s", event_type, result.value.id, outcome.value)
    return WebhookAck()
