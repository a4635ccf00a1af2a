import uuid
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_
from counsel.modules.appointments.models import Appointment, AppointmentStatus

class AppointmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> Appointment:
        obj = Appointment(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, appt_id: uuid.UUID, *, refresh: bool = False) -> Appointment | None:
        q = select(Appointment).where(
            and_(Appointment.id == appt_id,
                 Appointment.deleted_at.is_(None))
        )
        if refresh:
            q = q.execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_idempotency_key(self, customer_id: uuid.UUID, key: str) -> Appointment | None:
        q = select(Appointment).where(
            Appointment.customer_id == customer_id,
            Appointment.idempotency_key == key,
            Appointment.deleted_at.is_(None),
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list(self, *, consultant_id: uuid.UUID | None = None, customer_id: uuid.UUID | None = None, slot_id: uuid.UUID | None = None, status: AppointmentStatus | None = None, limit: int = 50, offset: int = 0) -> Sequence[Appointment]:
        cond = [Appointment.deleted_at.is_(None)]
        if consultant_id:
            cond.append(Appointment.consultant_id == consultant_id)
        if customer_id:
            cond.append(Appointment.customer_id == customer_id)
        if slot_id:
            cond.append(Appointment.slot_id == slot_id)
        if status:
            cond.append(Appointment.status == status)
        q = select(Appointment).where(and_(*cond)).order_by(Appointment.date_booking.desc()).limit(limit).offset(offset)
        res = await self.session.execute(q)
        return res.scalars().all()

    async def conditional_update(self, appt_id: uuid.UUID, *, expected_status: AppointmentStatus, expected_version: int, **values) -> bool:
        """Apply `values` only if status and version are still what the caller read."""
        res = await self.session.execute(
            update(Appointment)
            .where(
                Appointment.id == appt_id,
                Appointment.deleted_at.is_(None),
                Appointment.status == expected_status,
                Appointment.version == expected_version,
            )
            .values(version=Appointment.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1
