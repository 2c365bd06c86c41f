from pydantic import BaseModel, Field
from typing import Optional, Annotated
from datetime import datetime
from decimal import Decimal

from ..models.service import ServiceType


class ServiceBase(BaseModel):
    service_type: ServiceType = ServiceType.OTHER
    title: Annotated[str, Field(min_length=1, max_length=200)]
    description: Optional[str] = None
    price: Annotated[Decimal, Field(gt=0, max_digits=10, decimal_places=2)]


class ServiceCreate(ServiceBase):
    currency: Optional[Annotated[str, Field(min_length=3, max_length=3)]] = None


class ServiceResponse(ServiceBase):
    id: int
    provider_id: int
    currency: str
    average_rating: float
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ServiceUpdate(BaseModel):
    service_type: Optional[ServiceType] = None
    title: Optional[Annotated[str, Field(min_length=1, max_length=200)]] = None
    description: Optional[str] = None
    price: Optional[Annotated[Decimal, Field(gt=0, max_digits=10, decimal_places=2)]] = None
    currency: Optional[Annotated[str, Field(min_length=3, max_length=3)]] = None
