from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from typing import Iterable, List, Optional, Type
from datetime import datetime
import logging

from .. import models
from ..models.booking_status import BookingStatus, PaymentStatus
from ..utils.errors import ConflictError, SlotTakenError

logger = logging.getLogger(__name__)


class CRUDBooking:
    """Booking store. Every state change is a conditional UPDATE.

    Writes match on the value the caller observed; when no row matches the
    store rolls back and raises ``ConflictError`` instead of overwriting.
    """

    def get_booking(self, db: Session, booking_id: str) -> Optional[models.Booking]:
        return (
            db.query(models.Booking)
            .options(selectinload(models.Booking.service))
            .filter(models.Booking.id == booking_id)
            .first()
        )

    def get_by_payment_intent(self, db: Session, payment_intent_id: str) -> Optional[models.Booking]:
        return (
            db.query(models.Booking)
            .filter(models.Booking.payment_intent_id == payment_intent_id)
            .first()
        )

    def get_bookings_by_owner(
        self, db: Session, owner_id: int, skip: int = 0, limit: int = 100
    ) -> List[models.Booking]:
        return (
            db.query(models.Booking)
            .options(selectinload(models.Booking.service))
            .filter(models.Booking.owner_id == owner_id)
            .order_by(models.Booking.booking_time.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_bookings_by_provider(
        self, db: Session, provider_id: int, skip: int = 0, limit: int = 100
    ) -> List[models.Booking]:
        return (
            db.query(models.Booking)
            .join(models.Service, models.Booking.service_id == models.Service.id)
            .options(selectinload(models.Booking.service))
            .filter(models.Service.provider_id == provider_id)
            .order_by(models.Booking.booking_time.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def slot_taken(self, db: Session, service_id: int, booking_time: datetime, exclude_id: Optional[str] = None) -> bool:
        query = db.query(models.Booking.id).filter(
            models.Booking.service_id == service_id,
            models.Booking.booking_time == booking_time,
            models.Booking.status != BookingStatus.CANCELLED,
        )
        if exclude_id is not None:
            query = query.filter(models.Booking.id != exclude_id)
        return query.first() is not None

    def create_booking(
        self,
        db: Session,
        *,
        owner_id: int,
        service_id: int,
        booking_time: datetime,
        notes: Optional[str] = None,
    ) -> models.Booking:
        db_booking = models.Booking(
            owner_id=owner_id,
            service_id=service_id,
            booking_time=booking_time,
            notes=notes,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
        )
        db.add(db_booking)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise SlotTakenError(f"service {service_id} already booked at {booking_time}") from exc
        db.refresh(db_booking)
        return db_booking

    def _conditional_update(
        self,
        db: Session,
        criteria: Iterable,
        values: dict,
        booking_id: str,
        integrity_error: Type[ConflictError] = ConflictError,
    ) -> models.Booking:
        values = {**values, models.Booking.updated_at: datetime.utcnow()}
        try:
            matched = (
                db.query(models.Booking)
                .filter(*criteria)
                .update(values, synchronize_session=False)
            )
        except IntegrityError as exc:
            db.rollback()
            raise integrity_error(f"booking {booking_id} violates a uniqueness constraint") from exc
        if matched != 1:
            db.rollback()
            raise ConflictError(f"booking {booking_id} changed concurrently")
        db.commit()
        # The bulk UPDATE bypassed the identity map; reload from the row
        db.expire_all()
        return self.get_booking(db, booking_id)

    def update_booking_status(
        self, db: Session, booking_id: str, expected_status: BookingStatus, new_status: BookingStatus
    ) -> models.Booking:
        return self._conditional_update(
            db,
            (models.Booking.id == booking_id, models.Booking.status == expected_status),
            {models.Booking.status: new_status},
            booking_id,
        )

    def update_pending_details(
        self, db: Session, booking_id: str, changes: dict
    ) -> models.Booking:
        """Apply owner edits (booking_time, notes) only while still PENDING."""
        allowed = {k: v for k, v in changes.items() if k in ("booking_time", "notes")}
        values = {getattr(models.Booking, k): v for k, v in allowed.items()}
        return self._conditional_update(
            db,
            (models.Booking.id == booking_id, models.Booking.status == BookingStatus.PENDING),
            values,
            booking_id,
            integrity_error=SlotTakenError,
        )

    def set_payment_intent(self, db: Session, booking_id: str, payment_intent_id: str) -> models.Booking:
        return self._conditional_update(
            db,
            (models.Booking.id == booking_id, models.Booking.payment_intent_id.is_(None)),
            {models.Booking.payment_intent_id: payment_intent_id},
            booking_id,
        )

    def set_payment_status(
        self,
        db: Session,
        booking_id: str,
        payment_intent_id: str,
        expected: Iterable[PaymentStatus],
        new_status: PaymentStatus,
    ) -> models.Booking:
        return self._conditional_update(
            db,
            (
                models.Booking.id == booking_id,
                models.Booking.payment_intent_id == payment_intent_id,
                models.Booking.payment_status.in_(list(expected)),
            ),
            {models.Booking.payment_status: new_status},
            booking_id,
        )


booking = CRUDBooking()
