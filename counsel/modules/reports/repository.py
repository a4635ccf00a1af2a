import uuid
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from counsel.modules.reports.models import Report

class ReportRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> Report:
        obj = Report(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get_by_appointment(self, appointment_id: uuid.UUID, *, refresh: bool = False) -> Report | None:
        q = select(Report).where(Report.appointment_id == appointment_id, Report.deleted_at.is_(None))
        if refresh:
            q = q.execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list(self, *, consultant_id: uuid.UUID | None = None, account_id: uuid.UUID | None = None, limit: int = 50, offset: int = 0) -> Sequence[Report]:
        q = select(Report).where(Report.deleted_at.is_(None))
        if consultant_id:
            q = q.where(Report.consultant_id == consultant_id)
        if account_id:
            q = q.where(Report.account_id == account_id)
        q = q.order_by(Report.report_date.desc()).limit(limit).offset(offset)
        res = await self.session.execute(q)
        return res.scalars().all()
