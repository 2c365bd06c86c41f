from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session
from typing import Any, List

from ..database import get_db
from ..models.user import User
from ..schemas.booking import BookingCreate, BookingUpdate, BookingStatusUpdate, BookingResponse
from ..services import booking_lifecycle
from ..utils import failure_response
from .dependencies import get_current_actor, get_current_owner, get_current_provider
from ..services.booking_lifecycle import Actor

router = APIRouter(tags=["bookings"], default_response_class=ORJSONResponse)
# No prefix here; main.py mounts this router under /api/v1/bookings


@router.post(
    "/service/{service_id}",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    *,
    db: Session = Depends(get_db),
    service_id: int = Path(..., title="The ID of the service to book"),
    booking_in: BookingCreate,
    current_owner: User = Depends(get_current_owner),
) -> Any:
    """
    Create a new PENDING booking. Only pet owners may book services.
    """
    result = booking_lifecycle.create_booking(
        db,
        Actor.from_user(current_owner),
        service_id,
        booking_in.booking_time,
        booking_in.notes,
    )
    if not result.ok:
        raise failure_response(result)
    return result.value


@router.get("/my-as-owner", response_model=List[BookingResponse])
def read_my_bookings_as_owner(
    db: Session = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_owner: User = Depends(get_current_owner),
) -> Any:
    """
    Bookings made by the current owner, latest first.
    """
    return booking_lifecycle.list_bookings_for_owner(db, current_owner.id, skip=skip, limit=limit)


@router.get("/my-as-provider", response_model=List[BookingResponse])
def read_my_bookings_as_provider(
    db: Session = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_provider: User = Depends(get_current_provider),
) -> Any:
    """
    Bookings for the current provider's services.
    """
    return booking_lifecycle.list_bookings_for_provider(db, current_provider.id, skip=skip, limit=limit)


@router.get("/{booking_id}", response_model=BookingResponse)
def read_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> Any:
    result = booking_lifecycle.get_booking_for_actor(db, booking_id, actor)
    if not result.ok:
        raise failure_response(result)
    return result.value


@router.patch("/{booking_id}", response_model=BookingResponse)
def update_booking(
    booking_id: str,
    booking_in: BookingUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> Any:
    """
    Owner edits of time and notes while the booking is still PENDING.
    """
    result = booking_lifecycle.reschedule_booking(
        db, booking_id, actor, booking_in.booking_time, booking_in.notes
    )
    if not result.ok:
        raise failure_response(result)
    return result.value


@router.patch("/{booking_id}/status", response_model=BookingResponse)
def update_booking_status(
    booking_id: str,
    status_update: BookingStatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> Any:
    """
    Move a booking along its lifecycle.

    - Provider: PENDING -> CONFIRMED, PENDING -> CANCELLED, CONFIRMED -> COMPLETED
    - Owner: PENDING -> CANCELLED, CONFIRMED -> CANCELLED
    """
    result = booking_lifecycle.request_status_change(db, booking_id, actor, status_update.status)
    if not result.ok:
        raise failure_response(result)
    return result.value
