import uuid
from datetime import datetime, timedelta
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_, or_, func
from counsel.modules.slots.models import Slot, SlotStatus
from counsel.modules.appointments.models import Appointment, ACTIVE_STATUSES

class SlotRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> Slot:
        obj = Slot(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, slot_id: uuid.UUID, *, refresh: bool = False) -> Slot | None:
        q = select(Slot).where(Slot.id == slot_id, Slot.deleted_at.is_(None))
        if refresh:
            q = q.execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list(self, *, consultant_id: uuid.UUID | None = None, start: datetime | None = None, end: datetime | None = None, status: SlotStatus | None = None) -> Sequence[Slot]:
        cond = [Slot.deleted_at.is_(None)]
        if consultant_id:
            cond.append(Slot.consultant_id == consultant_id)
        if start:
            cond.append(Slot.start_time >= start)
        if end:
            cond.append(Slot.start_time < end)
        if status:
            cond.append(Slot.status == status)
        q = select(Slot).where(and_(*cond)).order_by(Slot.start_time.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def list_starts_in_range(self, consultant_id: uuid.UUID, start: datetime, end: datetime) -> Sequence[datetime]:
        res = await self.session.execute(select(Slot.start_time).where(
            Slot.consultant_id == consultant_id,
            Slot.deleted_at.is_(None),
            Slot.start_time >= start,
            Slot.start_time < end,
        ))
        return res.scalars().all()

    def _claimable(self, slot_id: uuid.UUID, customer_id: uuid.UUID, now: datetime):
        # available, and either unheld, held by this customer, or hold lapsed
        return and_(
            Slot.id == slot_id,
            Slot.deleted_at.is_(None),
            Slot.status == SlotStatus.available,
            or_(Slot.held_by.is_(None), Slot.held_by == customer_id, Slot.hold_expires_at <= now),
        )

    async def try_book(self, slot_id: uuid.UUID, customer_id: uuid.UUID, now: datetime) -> bool:
        res = await self.session.execute(
            update(Slot)
            .where(self._claimable(slot_id, customer_id, now))
            .values(status=SlotStatus.booked, held_by=None, hold_expires_at=None, version=Slot.version + 1)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    async def try_hold(self, slot_id: uuid.UUID, customer_id: uuid.UUID, now: datetime, ttl_seconds: int) -> bool:
        res = await self.session.execute(
            update(Slot)
            .where(self._claimable(slot_id, customer_id, now))
            .values(held_by=customer_id, hold_expires_at=now + timedelta(seconds=ttl_seconds), version=Slot.version + 1)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    async def clear_hold(self, slot_id: uuid.UUID, customer_id: uuid.UUID) -> bool:
        res = await self.session.execute(
            update(Slot)
            .where(Slot.id == slot_id, Slot.held_by == customer_id)
            .values(held_by=None, hold_expires_at=None, version=Slot.version + 1)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    async def clear_lapsed_hold(self, slot_id: uuid.UUID, now: datetime) -> bool:
        res = await self.session.execute(
            update(Slot)
            .where(Slot.id == slot_id, Slot.held_by.is_not(None), Slot.hold_expires_at <= now)
            .values(held_by=None, hold_expires_at=None, version=Slot.version + 1)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    async def release(self, slot_id: uuid.UUID) -> bool:
        res = await self.session.execute(
            update(Slot)
            .where(Slot.id == slot_id, Slot.deleted_at.is_(None), Slot.status == SlotStatus.booked)
            .values(status=SlotStatus.available, held_by=None, hold_expires_at=None, version=Slot.version + 1)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    async def soft_delete(self, slot_id: uuid.UUID, at: datetime) -> bool:
        res = await self.session.execute(
            update(Slot)
            .where(Slot.id == slot_id, Slot.deleted_at.is_(None), Slot.status != SlotStatus.booked)
            .values(status=SlotStatus.deleted, deleted_at=at, held_by=None, hold_expires_at=None, version=Slot.version + 1)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    async def count_active_appointments(self, slot_id: uuid.UUID) -> int:
        res = await self.session.execute(select(func.count(Appointment.id)).where(
            Appointment.slot_id == slot_id,
            Appointment.deleted_at.is_(None),
            Appointment.status.in_(ACTIVE_STATUSES),
        ))
        return res.scalar_one()
