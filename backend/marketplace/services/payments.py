"""Payment coupling between bookings and the gateway.

Payment invariants:
- The owner starts payment only after the provider confirmed the booking;
  confirmation itself never looks at payment state.
- A booking gets at most one payment intent. The id is written once by a
  conditional update, so a second or racing request is AlreadyProcessed.
- PAID is only ever recorded from a verified gateway webhook. Payment
  outcomes never change the booking's lifecycle status.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from .. import crud, models
from ..core.config import settings
from ..models.booking_status import BookingStatus, PaymentStatus
from ..models.user import UserRole
from ..utils.errors import ConflictError
from .booking_lifecycle import Actor
from .results import ErrorKind, Failure, Result, Success, not_found, unauthorized
from .stripe_gateway import GatewayError, PaymentGateway

logger = logging.getLogger(__name__)

# Outcome -> payment statuses it may be applied from
_OUTCOME_SOURCES = {
    PaymentStatus.PAID: (PaymentStatus.PENDING, PaymentStatus.FAILED),
    PaymentStatus.FAILED: (PaymentStatus.PENDING,),
}


@dataclass(frozen=True)
class IntentCreated:
    booking_id: str
    payment_intent_id: str
    client_secret: str
    amount: int
    platform_fee: int
    provider_amount: int
    currency: str


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def split_amount(amount: int, fee_percent: float) -> tuple[int, int]:
    """Return (platform_fee, provider_amount) in minor units."""
    fee = int((Decimal(amount) * Decimal(str(fee_percent)) / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return fee, amount - fee


def _already_processed(booking_id: str) -> Failure:
    return Failure(
        ErrorKind.ALREADY_PROCESSED,
        "Payment already initiated for this booking.",
        {"booking_id": "payment_exists"},
    )


def create_payment_intent(
    db: Session, booking_id: str, actor: Actor, gateway: PaymentGateway
) -> Result[IntentCreated]:
    booking = crud.booking.get_booking(db, booking_id)
    if booking is None:
        return not_found()
    if actor.role != UserRole.OWNER or booking.owner_id != actor.id:
        return unauthorized("You can only pay for your own bookings.")
    if booking.payment_intent_id or PaymentStatus(booking.payment_status) == PaymentStatus.PAID:
        return _already_processed(booking_id)
    if BookingStatus(booking.status) != BookingStatus.CONFIRMED:
        return Failure(
            ErrorKind.INVALID_TRANSITION,
            "Booking must be confirmed before payment.",
            {"status": BookingStatus(booking.status).value},
        )

    service = booking.service
    amount = to_minor_units(service.price)
    currency = (service.currency or settings.DEFAULT_CURRENCY).lower()
    platform_fee, provider_amount = split_amount(amount, settings.PLATFORM_FEE_PERCENT)

    try:
        intent = gateway.create_payment_intent(
            booking_id,
            amount,
            currency,
            metadata={
                "owner_id": str(booking.owner_id),
                "provider_id": str(service.provider_id),
                "platform_fee": str(platform_fee),
            },
            idempotency_key=f"booking-{booking_id}-{uuid.uuid4().hex}",
        )
    except GatewayError as exc:
        logger.error("Payment intent creation failed for booking %s: %s", booking_id, exc)
        return Failure(
            ErrorKind.GATEWAY_ERROR,
            "Payment initialization failed.",
            {"gateway": str(exc)},
        )

    try:
        crud.booking.set_payment_intent(db, booking_id, intent.id)
    except ConflictError:
        # A concurrent request stored its intent first; ours stays unused
        logger.warning(
            "Discarding payment intent %s: booking %s already has one", intent.id, booking_id
        )
        return _already_processed(booking_id)

    logger.info("Payment intent %s created for booking %s amount=%s %s", intent.id, booking_id, amount, currency)
    return Success(
        IntentCreated(
            booking_id=booking_id,
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=amount,
            platform_fee=platform_fee,
            provider_amount=provider_amount,
            currency=currency,
        )
    )


def apply_payment_outcome(
    db: Session, payment_intent_id: str, outcome: PaymentStatus
) -> Result[models.Booking]:
    """Record the terminal gateway outcome for ``payment_intent_id``.

    Replays of an already recorded outcome succeed without writing.
    """
    if outcome not in _OUTCOME_SOURCES:
        raise ValueError(f"unsupported payment outcome {outcome!r}")

    booking = crud.booking.get_by_payment_intent(db, payment_intent_id)
    if booking is None:
        return not_found("Payment intent", "payment_intent_id")

    current = PaymentStatus(booking.payment_status)
    if current == outcome:
        return Success(booking)
    if current not in _OUTCOME_SOURCES[outcome]:
        logger.warning(
            "Ignoring %s for intent %s: booking %s already %s",
            outcome.value, payment_intent_id, booking.id, current.value,
        )
        return _already_processed(booking.id)

    try:
        updated = crud.booking.set_payment_status(
            db, booking.id, payment_intent_id, _OUTCOME_SOURCES[outcome], outcome
        )
    except ConflictError:
        # Another delivery got there first; report whatever is stored now
        latest = crud.booking.get_booking(db, booking.id)
        if latest is not None and PaymentStatus(latest.payment_status) == outcome:
            return Success(latest)
        return _already_processed(booking.id)

    logger.info("Booking %s payment %s -> %s", updated.id, current.value, outcome.value)
    return Success(updated)
