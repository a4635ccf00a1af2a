import uuid
from decimal import Decimal
from datetime import datetime
from pydantic import BaseModel, Field
from counsel.modules.services.models import ServiceStatus

class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str | None = None
    price: Decimal = Field(ge=0)
    status: ServiceStatus = ServiceStatus.active

class ServiceUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    status: ServiceStatus | None = None

class ServiceOut(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    price: Decimal
    status: ServiceStatus
    created_at: datetime

    class Config:
        from_attributes = True
