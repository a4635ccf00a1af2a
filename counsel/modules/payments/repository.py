import uuid
from datetime import datetime
from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import Date, select, update, func, extract
from counsel.modules.payments.models import Payment, PaymentStatus
from counsel.modules.appointments.models import Appointment
from counsel.modules.services.models import Service

class PaymentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> Payment:
        obj = Payment(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, payment_id: uuid.UUID, *, refresh: bool = False) -> Payment | None:
        q = select(Payment).where(Payment.id == payment_id, Payment.deleted_at.is_(None))
        if refresh:
            q = q.execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_link(self, payment_link_id: str) -> Payment | None:
        res = await self.session.execute(select(Payment).where(Payment.payment_link_id == payment_link_id, Payment.deleted_at.is_(None)))
        return res.scalar_one_or_none()

    async def list_for_appointment(self, appointment_id: uuid.UUID) -> Sequence[Payment]:
        res = await self.session.execute(
            select(Payment)
            .where(Payment.appointment_id == appointment_id, Payment.deleted_at.is_(None))
            .order_by(Payment.date.desc())
        )
        return res.scalars().all()

    async def completed_for_appointment(self, appointment_id: uuid.UUID) -> Payment | None:
        res = await self.session.execute(
            select(Payment)
            .where(Payment.appointment_id == appointment_id, Payment.deleted_at.is_(None), Payment.status == PaymentStatus.completed)
            .order_by(Payment.date.desc())
            .limit(1)
        )
        return res.scalar_one_or_none()

    async def settle(self, payment_id: uuid.UUID, status: PaymentStatus, **values) -> bool:
        # only a pending payment can move to a final outcome
        res = await self.session.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.deleted_at.is_(None), Payment.status == PaymentStatus.pending)
            .values(status=status, version=Payment.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    async def revenue_total(self) -> tuple:
        res = await self.session.execute(
            select(func.coalesce(func.sum(Payment.total_price), 0), func.count(Payment.id))
            .where(Payment.status == PaymentStatus.completed, Payment.deleted_at.is_(None))
        )
        return res.one()

    def _completed_between(self, start: datetime, end: datetime):
        return (
            Payment.status == PaymentStatus.completed,
            Payment.deleted_at.is_(None),
            Payment.date >= start,
            Payment.date < end,
        )

    async def revenue_by_day(self, start: datetime, end: datetime) -> Sequence:
        day = func.date(Payment.date, type_=Date)
        res = await self.session.execute(
            select(day, func.coalesce(func.sum(Payment.total_price), 0), func.count(Payment.id))
            .where(*self._completed_between(start, end))
            .group_by(day)
            .order_by(day)
        )
        return res.all()

    async def revenue_by_month(self, start: datetime, end: datetime) -> Sequence:
        month = extract("month", Payment.date)
        res = await self.session.execute(
            select(month, func.coalesce(func.sum(Payment.total_price), 0), func.count(Payment.id))
            .where(*self._completed_between(start, end))
            .group_by(month)
            .order_by(month)
        )
        return res.all()

    async def revenue_by_service(self) -> Sequence:
        total = func.coalesce(func.sum(Payment.total_price), 0)
        res = await self.session.execute(
            select(Service.id, Service.name, total, func.count(Payment.id))
            .select_from(Payment)
            .join(Appointment, Appointment.id == Payment.appointment_id)
            .join(Service, Service.id == Appointment.service_id)
            .where(Payment.status == PaymentStatus.completed, Payment.deleted_at.is_(None))
            .group_by(Service.id, Service.name)
            .order_by(total.desc())
        )
        return res.all()
