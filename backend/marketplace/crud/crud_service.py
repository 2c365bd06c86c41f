from sqlalchemy.orm import Session
from typing import List, Optional

from .. import models, schemas


class CRUDService:
    def get_service(self, db: Session, service_id: int) -> Optional[models.Service]:
        return db.query(models.Service).filter(models.Service.id == service_id).first()

    def get_services(
        self,
        db: Session,
        skip: int = 0,
        limit: int = 100,
        service_type: Optional[models.ServiceType] = None,
        provider_id: Optional[int] = None,
    ) -> List[models.Service]:
        query = db.query(models.Service)
        if service_type is not None:
            query = query.filter(models.Service.service_type == service_type)
        if provider_id is not None:
            query = query.filter(models.Service.provider_id == provider_id)
        return query.order_by(models.Service.id).offset(skip).limit(limit).all()

    def create_service(
        self, db: Session, service_in: schemas.ServiceCreate, provider_id: int
    ) -> models.Service:
        data = service_in.model_dump(exclude_none=True)
        db_service = models.Service(**data, provider_id=provider_id)
        db.add(db_service)
        db.commit()
        db.refresh(db_service)
        return db_service

    def update_service(
        self, db: Session, db_service: models.Service, service_in: schemas.ServiceUpdate
    ) -> models.Service:
        # Only fields the client sent; explicit nulls for required columns are dropped
        update_data = service_in.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            if value is None and key != "description":
                continue
            setattr(db_service, key, value)
        db.commit()
        db.refresh(db_service)
        return db_service

    def has_bookings(self, db: Session, service_id: int) -> bool:
        return (
            db.query(models.Booking.id)
            .filter(models.Booking.service_id == service_id)
            .first()
            is not None
        )

    def delete_service(self, db: Session, db_service: models.Service) -> None:
        db.delete(db_service)
        db.commit()


service = CRUDService()
