import uuid
import logging
from datetime import datetime, timedelta
from urllib.parse import urlparse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from counsel.core.base import utcnow, as_utc
from counsel.core.config import settings
from counsel.core.errors import (
    DomainError, NotFoundError, ValidationError, ConflictError,
    InvalidStateError, TooEarlyError, WindowClosedError,
)
from counsel.core.windows import check_window
from counsel.modules.appointments.repository import AppointmentRepository
from counsel.modules.appointments.models import Appointment, AppointmentStatus, VALID_NEXT
from counsel.modules.appointments.schemas import AppointmentCreate
from counsel.modules.services.models import ServiceStatus
from counsel.modules.services.service import CatalogService
from counsel.modules.slots.service import SlotService
from counsel.modules.events.outbox import OutboxService

logger = logging.getLogger(__name__)

MEET_HOST = "meet.google.com"

def _valid_meet_link(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and (parsed.hostname or "").lower() == MEET_HOST and bool(parsed.path.strip("/"))

class AppointmentService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.appts = AppointmentRepository(session)
        self.slots = SlotService(session)
        self.catalog = CatalogService(session)
        self.outbox = OutboxService(session)

    async def get(self, appt_id: uuid.UUID, *, refresh: bool = False) -> Appointment:
        obj = await self.appts.get(appt_id, refresh=refresh)
        if not obj:
            raise NotFoundError("Appointment not found")
        return obj

    async def list_by_consultant(self, consultant_id: uuid.UUID, status: AppointmentStatus | None = None, limit: int = 50, offset: int = 0):
        return await self.appts.list(consultant_id=consultant_id, status=status, limit=limit, offset=offset)

    async def list_by_customer(self, customer_id: uuid.UUID, status: AppointmentStatus | None = None, limit: int = 50, offset: int = 0):
        return await self.appts.list(customer_id=customer_id, status=status, limit=limit, offset=offset)

    async def list_by_slot(self, slot_id: uuid.UUID):
        return await self.appts.list(slot_id=slot_id)

    # ---- Booking ----

    async def create_appointment(self, customer_id: uuid.UUID, payload: AppointmentCreate, idempotency_key: str | None = None, now: datetime | None = None) -> Appointment:
        """Book the slot and create a pending appointment in one transaction.

        A repeated call with the same idempotency key from the same customer
        returns the appointment created by the first call and writes nothing.
        """
        now = now or utcnow()
        if idempotency_key:
            existing = await self.appts.get_by_idempotency_key(customer_id, idempotency_key)
            if existing:
                logger.info(f"Idempotent replay of appointment {existing.id} for key {idempotency_key}")
                return existing

        service = await self.catalog.get(payload.service_id)
        if service.status != ServiceStatus.active:
            raise ValidationError("Service is not active", fields=["service_id"])

        try:
            slot = await self.slots.book_slot(payload.slot_id, customer_id, now)
            appt = await self.appts.create(
                slot_id=slot.id,
                customer_id=customer_id,
                consultant_id=slot.consultant_id,
                service_id=service.id,
                date_booking=slot.start_time,
                reason=payload.reason,
                note=payload.note,
                status=AppointmentStatus.pending,
                idempotency_key=idempotency_key,
            )
            await self.outbox.enqueue(
                "APPOINTMENT_CREATED", "appointment", appt.id,
                {"slot_id": str(slot.id), "customer_id": str(customer_id), "consultant_id": str(slot.consultant_id)}
            )
            await self.session.commit()
        except DomainError:
            await self.session.rollback()
            raise
        except IntegrityError:
            # concurrent request with the same idempotency key won the insert
            await self.session.rollback()
            if idempotency_key:
                existing = await self.appts.get_by_idempotency_key(customer_id, idempotency_key)
                if existing:
                    return existing
            raise ConflictError("Appointment could not be created")

        logger.info(f"Appointment {appt.id} booked on slot {slot.id} for customer {customer_id}")
        return appt

    # ---- Lifecycle ----

    async def _transition(self, appt: Appointment, to: AppointmentStatus, expected_version: int | None = None, **values) -> Appointment:
        """Gated status change inside the current transaction; the caller commits."""
        if to not in VALID_NEXT[appt.status]:
            raise InvalidStateError(f"Cannot change appointment from {appt.status.value} to {to.value}")
        if expected_version is not None and expected_version != appt.version:
            raise ConflictError(f"Appointment version is {appt.version}, expected {expected_version}")

        frm = appt.status
        ok = await self.appts.conditional_update(appt.id, expected_status=frm, expected_version=appt.version, status=to, **values)
        if not ok:
            raise ConflictError("Appointment was modified concurrently")
        await self.outbox.enqueue(
            "APPOINTMENT_STATUS_CHANGED", "appointment", appt.id,
            {"from": frm.value, "to": to.value}
        )
        return await self.get(appt.id, refresh=True)

    async def _finish(self, appt_id: uuid.UUID, commit: bool) -> Appointment:
        if commit:
            await self.session.commit()
        return await self.get(appt_id, refresh=True)

    async def confirm_appointment(self, appt_id: uuid.UUID, expected_version: int | None = None, *, commit: bool = True, **values) -> Appointment:
        appt = await self.get(appt_id)
        if appt.status != AppointmentStatus.pending:
            raise InvalidStateError(f"Only pending appointments can be confirmed (status is {appt.status.value})")
        await self._transition(appt, AppointmentStatus.confirmed, expected_version, **values)
        return await self._finish(appt_id, commit)

    async def complete_appointment(self, appt_id: uuid.UUID, now: datetime | None = None, expected_version: int | None = None) -> Appointment:
        now = now or utcnow()
        appt = await self.get(appt_id)
        if appt.status != AppointmentStatus.confirmed:
            raise InvalidStateError(f"Only confirmed appointments can be completed (status is {appt.status.value})")
        slot = await self.slots.get_slot(appt.slot_id)
        if as_utc(now) < as_utc(slot.end_time):
            raise TooEarlyError("Appointment cannot be completed before the session ends")
        await self._transition(appt, AppointmentStatus.completed, expected_version)
        return await self._finish(appt_id, True)

    async def cancel_appointment(self, appt_id: uuid.UUID, expected_version: int | None = None, *, commit: bool = True, **values) -> Appointment:
        appt = await self.get(appt_id)
        if appt.status == AppointmentStatus.cancelled:
            return appt
        await self._transition(appt, AppointmentStatus.cancelled, expected_version, **values)
        await self.slots.release_slot(appt.slot_id)
        logger.info(f"Appointment {appt_id} cancelled, slot {appt.slot_id} released")
        return await self._finish(appt_id, commit)

    async def change_status(self, appt_id: uuid.UUID, to: AppointmentStatus, expected_version: int | None = None, now: datetime | None = None) -> Appointment:
        if to == AppointmentStatus.confirmed:
            return await self.confirm_appointment(appt_id, expected_version)
        if to == AppointmentStatus.completed:
            return await self.complete_appointment(appt_id, now, expected_version)
        if to == AppointmentStatus.cancelled:
            return await self.cancel_appointment(appt_id, expected_version)
        raise ValidationError(f"Status {to.value} cannot be set directly", fields=["status"])

    async def reschedule_appointment(self, appt_id: uuid.UUID, new_slot_id: uuid.UUID, new_consultant_id: uuid.UUID | None = None, now: datetime | None = None) -> Appointment:
        """Move a confirmed appointment to another slot.

        The old appointment ends as `rescheduled` and its slot is released; a new
        pending appointment is created on the new slot with the same service and
        the payment details carried over.
        """
        now = now or utcnow()
        appt = await self.get(appt_id)
        if appt.status != AppointmentStatus.confirmed:
            raise InvalidStateError(f"Only confirmed appointments can be rescheduled (status is {appt.status.value})")
        if appt.is_rescheduled:
            raise InvalidStateError("Appointment has already been rescheduled once")
        cutoff = as_utc(appt.date_booking) - timedelta(hours=settings.RESCHEDULE_MIN_LEAD_HOURS)
        if as_utc(now) > cutoff:
            raise WindowClosedError(f"Appointments can only be rescheduled at least {settings.RESCHEDULE_MIN_LEAD_HOURS} hours before the start")
        if new_slot_id == appt.slot_id:
            raise ValidationError("New slot must differ from the current slot", fields=["new_slot_id"])
        new_slot = await self.slots.get_slot(new_slot_id)
        if new_consultant_id and new_slot.consultant_id != new_consultant_id:
            raise ValidationError("Slot does not belong to the selected consultant", fields=["new_slot_id", "new_consultant_id"])

        try:
            await self._transition(appt, AppointmentStatus.rescheduled, is_rescheduled=True)
            await self.slots.release_slot(appt.slot_id)
            slot = await self.slots.book_slot(new_slot_id, appt.customer_id, now)
            new_appt = await self.appts.create(
                slot_id=slot.id,
                customer_id=appt.customer_id,
                consultant_id=slot.consultant_id,
                service_id=appt.service_id,
                date_booking=slot.start_time,
                reason=appt.reason,
                note=appt.note,
                status=AppointmentStatus.pending,
                is_rescheduled=True,
                rescheduled_from_id=appt.id,
                payment_details=dict(appt.payment_details) if appt.payment_details else None,
            )
            await self.outbox.enqueue(
                "APPOINTMENT_RESCHEDULED", "appointment", appt.id,
                {"new_appointment_id": str(new_appt.id), "old_slot_id": str(appt.slot_id), "new_slot_id": str(slot.id)}
            )
            await self.session.commit()
        except DomainError:
            await self.session.rollback()
            raise

        logger.info(f"Appointment {appt_id} rescheduled to {new_appt.id} on slot {slot.id}")
        return new_appt

    # ---- Meet link ----

    async def set_meet_link(self, appt_id: uuid.UUID, url: str | None, now: datetime | None = None) -> Appointment:
        now = now or utcnow()
        appt = await self.get(appt_id)
        if appt.status != AppointmentStatus.confirmed:
            raise InvalidStateError("Meet link can only be set on a confirmed appointment")
        slot = await self.slots.get_slot(appt.slot_id)
        check_window(slot.start_time, slot.end_time, now, settings.MEET_LINK_LEAD_MINUTES, "set the meet link")

        url = (url or "").strip() or None
        if url and not _valid_meet_link(url):
            raise ValidationError("Meet link must be a Google Meet URL", fields=["meet_link"])

        ok = await self.appts.conditional_update(appt.id, expected_status=AppointmentStatus.confirmed, expected_version=appt.version, meet_link=url)
        if not ok:
            await self.session.rollback()
            raise ConflictError("Appointment was modified concurrently")
        await self.session.commit()
        return await self.get(appt_id, refresh=True)
