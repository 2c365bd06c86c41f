from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session
from typing import List, Any, Optional

from .. import crud
from ..database import get_db
from ..models.service import ServiceType
from ..models.user import User
from ..schemas.service import ServiceCreate, ServiceResponse, ServiceUpdate
from .dependencies import get_current_provider
from ..utils import error_response

router = APIRouter(tags=["services"], default_response_class=ORJSONResponse)


@router.post("/", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    *,
    db: Session = Depends(get_db),
    service_in: ServiceCreate,
    current_provider: User = Depends(get_current_provider),
) -> Any:
    """
    Create a new service offering for the current provider.
    """
    return crud.service.create_service(db, service_in, provider_id=current_provider.id)


@router.get("/", response_model=List[ServiceResponse])
def list_services(
    db: Session = Depends(get_db),
    service_type: Optional[ServiceType] = Query(None),
    provider_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
) -> Any:
    return crud.service.get_services(
        db, skip=skip, limit=limit, service_type=service_type, provider_id=provider_id
    )


@router.get("/mine", response_model=List[ServiceResponse])
def list_my_services(
    db: Session = Depends(get_db),
    current_provider: User = Depends(get_current_provider),
) -> Any:
    """List all services offered by the current provider."""
    return crud.service.get_services(db, skip=0, limit=500, provider_id=current_provider.id)


# Keep read_service after static routes like /mine
@router.get("/{service_id}", response_model=ServiceResponse)
def read_service(service_id: int, db: Session = Depends(get_db)) -> Any:
    service = crud.service.get_service(db, service_id)
    if not service:
        raise error_response(
            "Service not found.",
            {"service_id": "not_found"},
            status.HTTP_404_NOT_FOUND,
        )
    return service


def _get_owned_service(db: Session, service_id: int, provider: User):
    service = crud.service.get_service(db, service_id)
    if not service:
        raise error_response(
            "Service not found.",
            {"service_id": "not_found"},
            status.HTTP_404_NOT_FOUND,
        )
    if service.provider_id != provider.id:
        raise error_response(
            "You can only manage your own services.",
            {"service_id": "forbidden"},
            status.HTTP_403_FORBIDDEN,
        )
    return service


@router.patch("/{service_id}", response_model=ServiceResponse)
def update_service(
    *,
    db: Session = Depends(get_db),
    service_id: int,
    service_in: ServiceUpdate,
    current_provider: User = Depends(get_current_provider),
) -> Any:
    """
    Update a service owned by the current provider.
    Full path → PATCH /api/v1/services/{service_id}
    """
    service = _get_owned_service(db, service_id, current_provider)
    return crud.service.update_service(db, service, service_in)


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_service(
    *,
    db: Session = Depends(get_db),
    service_id: int,
    current_provider: User = Depends(get_current_provider),
):
    """
    Delete a service owned by the current provider.
    Services that were ever booked stay so their bookings and reviews keep their history.
    """
    service = _get_owned_service(db, service_id, current_provider)
    if crud.service.has_bookings(db, service_id):
        raise error_response(
            "Services with bookings cannot be deleted.",
            {"service_id": "has_bookings"},
            status.HTTP_409_CONFLICT,
        )
    crud.service.delete_service(db, service)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
