import uuid
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from counsel.modules.services.models import Service, ServiceStatus

class ServiceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> Service:
        obj = Service(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, service_id: uuid.UUID) -> Service | None:
        q = select(Service).where(
            Service.id == service_id,
            Service.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list(self, *, status: ServiceStatus | None = None) -> Sequence[Service]:
        q = select(Service).where(Service.deleted_at.is_(None))
        if status:
            q = q.where(Service.status == status)
        res = await self.session.execute(q.order_by(Service.name.asc()))
        return res.scalars().all()
