import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from counsel.core.db import get_session
from counsel.core.security import get_principal, require_roles
from counsel.modules.services.schemas import ServiceCreate, ServiceUpdate, ServiceOut
from counsel.modules.services.models import ServiceStatus
from counsel.modules.services.service import CatalogService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> CatalogService:
    return CatalogService(session)

@router.post("/services", response_model=ServiceOut, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_roles("admin"))])
async def create_service(payload: ServiceCreate, service: CatalogService = Depends(svc)):
    return await service.create(payload)

@router.get("/services", response_model=list[ServiceOut], dependencies=[Depends(get_principal)])
async def list_services(status: ServiceStatus | None = None, service: CatalogService = Depends(svc)):
    return await service.list(status)

@router.get("/services/{service_id}", response_model=ServiceOut, dependencies=[Depends(get_principal)])
async def get_service(service_id: uuid.UUID, service: CatalogService = Depends(svc)):
    return await service.get(service_id)

@router.patch("/services/{service_id}", response_model=ServiceOut, dependencies=[Depends(require_roles("admin"))])
async def update_service(service_id: uuid.UUID, payload: ServiceUpdate, service: CatalogService = Depends(svc)):
    return await service.update(service_id, payload)
