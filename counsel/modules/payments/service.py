import uuid
import logging
from datetime import datetime, timezone
from decimal import Decimal
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from counsel.core.base import utcnow
from counsel.core.config import settings
from counsel.core.errors import DomainError, NotFoundError, ValidationError, ConflictError, InvalidStateError, UnauthorizedError
from counsel.modules.appointments.models import Appointment, AppointmentStatus
from counsel.modules.appointments.service import AppointmentService
from counsel.modules.payments.repository import PaymentRepository
from counsel.modules.payments.models import Payment, PaymentStatus
from counsel.modules.payments.schemas import PaymentCreate, PaymentOutcome, PaymentWebhook
from counsel.modules.payments.signature import verify_signature
from counsel.modules.events.outbox import OutboxService
from counsel.modules.slots.service import week_bounds

logger = logging.getLogger(__name__)

FINAL = (PaymentStatus.completed, PaymentStatus.failed)

def _paid_before_reschedule(appt: Appointment) -> bool:
    # payment details copied over from the original booking
    details = appt.payment_details or {}
    return bool(appt.rescheduled_from_id and details.get("transaction_no") and not details.get("failure_reason"))

class PaymentService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.payments = PaymentRepository(session)
        self.appointments = AppointmentService(session)
        self.outbox = OutboxService(session)

    async def get(self, payment_id: uuid.UUID, *, refresh: bool = False) -> Payment:
        obj = await self.payments.get(payment_id, refresh=refresh)
        if not obj:
            raise NotFoundError("Payment not found")
        return obj

    async def list_for_appointment(self, appointment_id: uuid.UUID):
        return await self.payments.list_for_appointment(appointment_id)

    async def create_payment(self, account_id: uuid.UUID, payload: PaymentCreate, now: datetime | None = None) -> Payment:
        """Start a payment for a pending appointment at the current service price."""
        now = now or utcnow()
        appt = await self.appointments.get(payload.appointment_id)

        for existing in await self.payments.list_for_appointment(appt.id):
            if existing.status == PaymentStatus.completed:
                raise ConflictError("Appointment is already paid")
            if existing.status == PaymentStatus.pending:
                return existing
        if _paid_before_reschedule(appt) or await self.carried_over_payment(appt):
            raise ConflictError("Appointment is already paid")

        if appt.status != AppointmentStatus.pending:
            raise InvalidStateError(f"Payments can only be started for pending appointments (status is {appt.status.value})")
        service = await self.appointments.catalog.get(appt.service_id)

        obj = await self.payments.create(
            appointment_id=appt.id,
            account_id=account_id,
            total_price=service.price,
            payment_method=payload.payment_method,
            status=PaymentStatus.pending,
            payment_link_id=uuid.uuid4().hex,
            date=now,
            description=payload.description or f"Payment for {service.name}",
        )
        await self.outbox.enqueue(
            "PAYMENT_CREATED", "payment", obj.id,
            {"appointment_id": str(appt.id), "total_price": str(obj.total_price)}
        )
        await self.session.commit()
        logger.info(f"Payment {obj.id} created for appointment {appt.id}: {obj.total_price}")
        return obj

    async def carried_over_payment(self, appt: Appointment) -> Payment | None:
        """Completed payment of the appointment this one was rescheduled from, if any."""
        seen = set()
        origin_id = appt.rescheduled_from_id
        while origin_id and origin_id not in seen:
            seen.add(origin_id)
            paid = await self.payments.completed_for_appointment(origin_id)
            if paid:
                return paid
            origin = await self.appointments.appts.get(origin_id)
            origin_id = origin.rescheduled_from_id if origin else None
        return None

    async def confirm_carried_over(self, appointment_id: uuid.UUID) -> Appointment:
        """Confirm a rescheduled appointment against the payment made for the original booking."""
        appt = await self.appointments.get(appointment_id)
        if appt.status != AppointmentStatus.pending or not appt.rescheduled_from_id:
            raise InvalidStateError("Only a pending rescheduled appointment can take over an earlier payment")
        paid = await self.carried_over_payment(appt)
        if paid is None and not _paid_before_reschedule(appt):
            raise InvalidStateError("No completed payment to carry over")

        details = dict(appt.payment_details or {})
        if paid is not None:
            details.update(
                transaction_no=paid.transaction_no,
                amount=str(paid.total_price),
                payment_method=paid.payment_method.value,
            )
        details["carried_over_from"] = str(appt.rescheduled_from_id)

        try:
            await self.appointments.confirm_appointment(appointment_id, commit=False, payment_details=details)
            await self.outbox.enqueue(
                "PAYMENT_CARRIED_OVER", "appointment", appointment_id,
                {"payment_id": str(paid.id) if paid else None, "from_appointment_id": details["carried_over_from"]}
            )
            await self.session.commit()
        except DomainError:
            await self.session.rollback()
            raise

        logger.info(f"Appointment {appointment_id} confirmed with payment carried over from {details['carried_over_from']}")
        return await self.appointments.get(appointment_id, refresh=True)

    async def record_payment_outcome(self, payment_id: uuid.UUID, outcome: PaymentOutcome, now: datetime | None = None) -> Payment:
        """Apply the provider's final verdict and move the appointment along with it."""
        now = now or utcnow()
        if outcome.status not in FINAL:
            raise ValidationError("Outcome must be completed or failed", fields=["status"])
        payment = await self.get(payment_id)
        if payment.status == outcome.status:
            return payment
        if payment.status != PaymentStatus.pending:
            raise ConflictError(f"Payment is already {payment.status.value}")

        details = {
            "transaction_no": outcome.transaction_no,
            "amount": str(payment.total_price),
            "payment_time": now.isoformat(),
            "payment_method": payment.payment_method.value,
        }
        if outcome.status == PaymentStatus.failed:
            details["failure_reason"] = outcome.failure_reason

        try:
            ok = await self.payments.settle(payment.id, outcome.status, transaction_no=outcome.transaction_no, failure_reason=outcome.failure_reason)
            if not ok:
                raise ConflictError("Payment was settled concurrently")
            await self._sync_appointment(payment.appointment_id, outcome.status, details)
            await self.outbox.enqueue(
                "PAYMENT_COMPLETED" if outcome.status == PaymentStatus.completed else "PAYMENT_FAILED",
                "payment", payment.id,
                {"appointment_id": str(payment.appointment_id), "transaction_no": outcome.transaction_no}
            )
            await self.session.commit()
        except DomainError:
            await self.session.rollback()
            raise

        logger.info(f"Payment {payment.id} recorded as {outcome.status.value}")
        return await self.get(payment.id, refresh=True)

    async def _sync_appointment(self, appointment_id: uuid.UUID, status: PaymentStatus, details: dict):
        appt = await self.appointments.get(appointment_id)
        if appt.status != AppointmentStatus.pending:
            logger.warning(f"Payment outcome for appointment {appt.id} in status {appt.status.value}; appointment left unchanged")
            return
        if status == PaymentStatus.completed:
            await self.appointments.confirm_appointment(appt.id, commit=False, payment_details=details)
        elif settings.FAILED_PAYMENT_POLICY == "cancel":
            await self.appointments.cancel_appointment(appt.id, commit=False, payment_details=details)
        else:
            appt.payment_details = details

    async def handle_webhook(self, body: bytes, signature: str | None, now: datetime | None = None) -> Payment:
        if not verify_signature(settings.PAYMENT_WEBHOOK_SECRET, body, signature):
            logger.warning("Payment webhook signature verification failed")
            raise UnauthorizedError("Invalid webhook signature")
        try:
            event = PaymentWebhook.model_validate_json(body)
        except PydanticValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ValidationError("Malformed webhook payload", fields=fields)
        payment = await self.payments.get_by_link(event.payment_link_id)
        if not payment:
            raise NotFoundError("Payment not found")
        return await self.record_payment_outcome(payment.id, event, now)

    async def revenue_total(self) -> dict:
        total, count = await self.payments.revenue_total()
        return {"total": Decimal(str(total)), "count": count}

    async def _daily_revenue(self, start: datetime, end: datetime) -> dict:
        daily = [Decimal("0")] * (end - start).days
        count = 0
        for day, total, n in await self.payments.revenue_by_day(start, end):
            daily[(day - start.date()).days] += Decimal(str(total))
            count += n
        return {"start": start, "end": end, "total": sum(daily, Decimal("0")), "count": count, "daily": daily}

    async def revenue_weekly(self, at: datetime | None = None) -> dict:
        """Completed revenue of the Monday-based UTC week containing `at`, one entry per day."""
        start, end = week_bounds(at or utcnow())
        return await self._daily_revenue(start, end)

    async def revenue_monthly(self, year: int, month: int) -> dict:
        start = datetime(year, month, 1, tzinfo=timezone.utc)
        end = datetime(year + month // 12, month % 12 + 1, 1, tzinfo=timezone.utc)
        out = await self._daily_revenue(start, end)
        out.update(year=year, month=month)
        return out

    async def revenue_yearly(self, year: int) -> dict:
        start = datetime(year, 1, 1, tzinfo=timezone.utc)
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
        monthly = [Decimal("0")] * 12
        counts = [0] * 12
        for month, total, n in await self.payments.revenue_by_month(start, end):
            monthly[int(month) - 1] += Decimal(str(total))
            counts[int(month) - 1] += n
        return {
            "year": year,
            "total": sum(monthly, Decimal("0")),
            "count": sum(counts),
            "monthly": monthly,
            "monthly_count": counts,
        }

    async def revenue_by_service(self) -> list[dict]:
        rows = await self.payments.revenue_by_service()
        return [
            {"service_id": sid, "service_name": name, "total": Decimal(str(total)), "count": count}
            for sid, name, total, count in rows
        ]
