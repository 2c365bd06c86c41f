"""Booking lifecycle: creation, owner edits and status transitions.

State machine::

    PENDING ──provider──▶ CONFIRMED ──provider──▶ COMPLETED
       │                      │
       └─owner/provider─┐     └─owner─┐
                        ▼             ▼
                     CANCELLED     CANCELLED

COMPLETED and CANCELLED are terminal. Every operation works on a freshly
read snapshot and commits through a conditional update keyed on the status
it observed, so a request that lost a race is rejected rather than applied
on top of the winner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import crud, models
from ..core.config import settings
from ..models.booking_status import BookingStatus
from ..models.user import UserRole
from ..utils.errors import ConflictError, SlotTakenError
from .results import ErrorKind, Failure, Result, Success, not_found, unauthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, detached from any request object."""

    id: int
    role: UserRole

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(id=user.id, role=UserRole(user.role))


# (source, target) -> roles allowed to take that edge
TRANSITIONS = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): frozenset({UserRole.PROVIDER}),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): frozenset({UserRole.OWNER, UserRole.PROVIDER}),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): frozenset({UserRole.OWNER}),
    (BookingStatus.CONFIRMED, BookingStatus.COMPLETED): frozenset({UserRole.PROVIDER}),
}


def is_party(actor: Actor, booking) -> bool:
    """True when ``actor`` is the booking's owner or provider in the role it claims."""
    if actor.role == UserRole.OWNER:
        return booking.owner_id == actor.id
    if actor.role == UserRole.PROVIDER:
        return booking.provider_id == actor.id
    return False


def authorize_status_change(actor: Actor, booking, target: BookingStatus) -> Optional[Failure]:
    """Decide whether ``actor`` may move ``booking`` to ``target``.

    Pure: looks only at the actor, the snapshot and the target. Returns
    ``None`` to allow, or the ``Failure`` to report.
    """
    if not is_party(actor, booking):
        return unauthorized("You are not a party to this booking.")
    source = BookingStatus(booking.status)
    allowed_roles = TRANSITIONS.get((source, target))
    if allowed_roles is None:
        return Failure(
            ErrorKind.INVALID_TRANSITION,
            f"Cannot change booking status from {source.value} to {target.value}.",
            {"status": "invalid_transition"},
        )
    if actor.role not in allowed_roles:
        return unauthorized(
            f"Only the {' or '.join(sorted(r.value.lower() for r in allowed_roles))} "
            f"may change this booking from {source.value} to {target.value}."
        )
    return None


def request_status_change(
    db: Session, booking_id: str, actor: Actor, target: BookingStatus
) -> Result[models.Booking]:
    booking = crud.booking.get_booking(db, booking_id)
    if booking is None:
        return not_found()

    denied = authorize_status_change(actor, booking, target)
    if denied is not None:
        logger.info(
            "status change denied booking=%s actor=%s role=%s target=%s kind=%s",
            booking_id, actor.id, actor.role.value, target.value, denied.kind.value,
        )
        return denied

    observed = BookingStatus(booking.status)
    try:
        updated = crud.booking.update_booking_status(db, booking_id, observed, target)
    except ConflictError:
        logger.warning(
            "status change lost race booking=%s observed=%s target=%s",
            booking_id, observed.value, target.value,
        )
        return Failure(
            ErrorKind.INVALID_TRANSITION,
            "Booking status changed while processing the request. Reload and retry.",
            {"status": "stale"},
        )
    logger.info(
        "booking %s status %s -> %s by %s %s",
        booking_id, observed.value, target.value, actor.role.value.lower(), actor.id,
    )
    return Success(updated)


def _slot_unavailable() -> Failure:
    return Failure(
        ErrorKind.SLOT_UNAVAILABLE,
        "This time slot is already booked.",
        {"booking_time": "taken"},
    )


def _naive_utc(value: datetime) -> datetime:
    # Stored times are naive UTC
    if value.tzinfo is None:
        return value
    return (value - value.utcoffset()).replace(tzinfo=None)


def _validate_booking_time(booking_time: datetime) -> Optional[Failure]:
    now = datetime.utcnow()
    if booking_time <= now:
        return Failure(
            ErrorKind.INVALID_BOOKING_TIME,
            "Booking time must be in the future.",
            {"booking_time": "in_past"},
        )
    if booking_time > now + timedelta(days=settings.BOOKING_MAX_ADVANCE_DAYS):
        return Failure(
            ErrorKind.INVALID_BOOKING_TIME,
            f"Bookings can only be made up to {settings.BOOKING_MAX_ADVANCE_DAYS} days in advance.",
            {"booking_time": "too_far_ahead"},
        )
    return None


def create_booking(
    db: Session,
    actor: Actor,
    service_id: int,
    booking_time: datetime,
    notes: Optional[str] = None,
) -> Result[models.Booking]:
    if actor.role != UserRole.OWNER:
        return unauthorized("Only pet owners can create bookings.")

    service = crud.service.get_service(db, service_id)
    if service is None:
        return not_found("Service", "service_id")

    booking_time = _naive_utc(booking_time)
    invalid = _validate_booking_time(booking_time)
    if invalid is not None:
        return invalid

    if crud.booking.slot_taken(db, service_id, booking_time):
        return _slot_unavailable()

    try:
        booking = crud.booking.create_booking(
            db,
            owner_id=actor.id,
            service_id=service_id,
            booking_time=booking_time,
            notes=notes,
        )
    except SlotTakenError:
        # A concurrent request took the slot after our check
        logger.warning("booking slot race lost service=%s time=%s", service_id, booking_time)
        return _slot_unavailable()
    logger.info("booking created id=%s owner=%s service=%s", booking.id, actor.id, service_id)
    return Success(booking)


def reschedule_booking(
    db: Session,
    booking_id: str,
    actor: Actor,
    booking_time: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> Result[models.Booking]:
    """Owner edits of time and notes, only while the booking is PENDING."""
    booking = crud.booking.get_booking(db, booking_id)
    if booking is None:
        return not_found()
    if actor.role != UserRole.OWNER or booking.owner_id != actor.id:
        return unauthorized("Only the booking owner can edit this booking.")
    if BookingStatus(booking.status) != BookingStatus.PENDING:
        return Failure(
            ErrorKind.INVALID_TRANSITION,
            "Only pending bookings can be edited.",
            {"status": booking.status.value},
        )

    changes = {}
    if notes is not None:
        changes["notes"] = notes
    if booking_time is not None:
        booking_time = _naive_utc(booking_time)
        invalid = _validate_booking_time(booking_time)
        if invalid is not None:
            return invalid
        if crud.booking.slot_taken(db, booking.service_id, booking_time, exclude_id=booking.id):
            return _slot_unavailable()
        changes["booking_time"] = booking_time
    if not changes:
        return Success(booking)

    try:
        updated = crud.booking.update_pending_details(db, booking_id, changes)
    except SlotTakenError:
        return _slot_unavailable()
    except ConflictError:
        return Failure(
            ErrorKind.INVALID_TRANSITION,
            "Booking is no longer pending.",
            {"status": "stale"},
        )
    return Success(updated)


def get_booking_for_actor(db: Session, booking_id: str, actor: Actor) -> Result[models.Booking]:
    booking = crud.booking.get_booking(db, booking_id)
    if booking is None:
        return not_found()
    if actor.role != UserRole.ADMIN and not is_party(actor, booking):
        return unauthorized("You are not a party to this booking.")
    return Success(booking)


def list_bookings_for_owner(db: Session, owner_id: int, skip: int = 0, limit: int = 100) -> List[models.Booking]:
    return crud.booking.get_bookings_by_owner(db, owner_id, skip=skip, limit=limit)


def list_bookings_for_provider(db: Session, provider_id: int, skip: int = 0, limit: int = 100) -> List[models.Booking]:
    return crud.booking.get_bookings_by_provider(db, provider_id, skip=skip, limit=limit)
