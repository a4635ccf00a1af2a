import uuid
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from counsel.core.errors import NotFoundError
from counsel.modules.services.repository import ServiceRepository
from counsel.modules.services.schemas import ServiceCreate, ServiceUpdate
from counsel.modules.services.models import Service, ServiceStatus

logger = logging.getLogger(__name__)

class CatalogService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ServiceRepository(session)

    async def create(self, payload: ServiceCreate) -> Service:
        obj = await self.repo.create(**payload.model_dump())
        await self.session.commit()
        return obj

    async def get(self, service_id: uuid.UUID) -> Service:
        obj = await self.repo.get(service_id)
        if not obj:
            raise NotFoundError("Service not found")
        return obj

    async def list(self, status: ServiceStatus | None = None):
        return await self.repo.list(status=status)

    async def update(self, service_id: uuid.UUID, payload: ServiceUpdate) -> Service:
        obj = await self.get(service_id)
        data = payload.model_dump(exclude_unset=True)
        if "price" in data and data["price"] is not None and data["price"] != obj.price:
            # existing payments keep their snapshot
            logger.info(f"Service {service_id} price changed {obj.price} -> {data['price']}")
        for k, v in data.items():
            if v is not None:
                setattr(obj, k, v)
        await self.session.commit()
        return obj
