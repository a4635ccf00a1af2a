import uuid
import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo
from sqlalchemy.ext.asyncio import AsyncSession
from counsel.core.base import utcnow, as_utc
from counsel.core.config import settings
from counsel.core.errors import NotFoundError, ValidationError, SlotUnavailableError, ConflictError, ForbiddenError
from counsel.modules.slots.repository import SlotRepository
from counsel.modules.slots.schemas import SlotWindow, SlotsQuery
from counsel.modules.slots.models import Slot, SlotStatus
from counsel.modules.events.outbox import OutboxService

logger = logging.getLogger(__name__)

def week_bounds(dt: datetime) -> tuple[datetime, datetime]:
    """Monday 00:00 UTC of the week containing `dt`, and the following Monday."""
    dt = as_utc(dt)
    start = (dt - timedelta(days=dt.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=7)

def local_day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Midnight-to-midnight of `day` in `tz`, expressed in UTC."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

class SlotService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = SlotRepository(session)

    async def list_slots(self, q: SlotsQuery):
        return await self.repo.list(consultant_id=q.consultant_id, start=q.start, end=q.end, status=q.status)

    async def available_consultants_by_day(self, day: date) -> dict:
        """Open slots of a local business day grouped into hourly blocks.

        Every block from BUSINESS_DAY_FIRST_HOUR to BUSINESS_DAY_LAST_HOUR is
        listed, with status "none" when no consultant has a free slot starting
        in that hour.
        """
        tz = ZoneInfo(settings.BUSINESS_TIMEZONE)
        start, end = local_day_bounds(day, tz)
        slots = await self.repo.list(start=start, end=end, status=SlotStatus.available)

        blocks = []
        for hour in range(settings.BUSINESS_DAY_FIRST_HOUR, settings.BUSINESS_DAY_LAST_HOUR + 1):
            open_ = [s for s in slots if as_utc(s.start_time).astimezone(tz).hour == hour]
            blocks.append({
                "time": f"{hour:02d}:00",
                "status": "available" if open_ else "none",
                "consultants": [{"consultant_id": s.consultant_id, "slot_id": s.id} for s in open_],
            })
        return {"date": day, "slots": blocks}

    async def get_slot(self, slot_id: uuid.UUID, *, refresh: bool = False) -> Slot:
        obj = await self.repo.get(slot_id, refresh=refresh)
        if not obj:
            raise NotFoundError("Slot not found")
        return obj

    async def create_slots(self, consultant_id: uuid.UUID, windows: list[SlotWindow]) -> tuple[list[Slot], int]:
        """Create slots for a consultant, skipping start times already registered in that week."""
        bad = [i for i, w in enumerate(windows) if as_utc(w.end_time) <= as_utc(w.start_time)]
        if bad:
            raise ValidationError("end_time must be after start_time", fields=[f"slots.{i}" for i in bad])

        week_start, week_end = week_bounds(windows[0].start_time)
        taken = {as_utc(t) for t in await self.repo.list_starts_in_range(consultant_id, week_start, week_end)}

        created: list[Slot] = []
        for w in windows:
            start = as_utc(w.start_time)
            if start in taken:
                continue
            taken.add(start)
            created.append(await self.repo.create(consultant_id=consultant_id, start_time=start, end_time=as_utc(w.end_time)))
        skipped = len(windows) - len(created)
        if created:
            await OutboxService(self.session).enqueue(
                "SLOTS_CREATED", "consultant", consultant_id,
                {"count": len(created), "skipped": skipped}
            )
        await self.session.commit()
        logger.info(f"Created {len(created)} slots for consultant {consultant_id} ({skipped} skipped)")
        return created, skipped

    async def hold_slot(self, slot_id: uuid.UUID, customer_id: uuid.UUID, now: datetime | None = None) -> Slot:
        now = now or utcnow()
        await self.get_slot(slot_id)
        ok = await self.repo.try_hold(slot_id, customer_id, now, settings.SLOT_HOLD_TTL_SECONDS)
        if not ok:
            await self.session.rollback()
            raise SlotUnavailableError("Slot is not available or is held by another customer")
        await self.session.commit()
        return await self.get_slot(slot_id, refresh=True)

    async def release_hold(self, slot_id: uuid.UUID, customer_id: uuid.UUID, now: datetime | None = None) -> Slot:
        now = now or utcnow()
        slot = await self.get_slot(slot_id)
        if slot.held_by is None:
            return slot
        if slot.held_by == customer_id:
            await self.repo.clear_hold(slot_id, customer_id)
        elif slot.hold_expires_at is not None and as_utc(slot.hold_expires_at) <= as_utc(now):
            # a lapsed hold no longer belongs to anyone
            await self.repo.clear_lapsed_hold(slot_id, now)
        else:
            raise ForbiddenError("Slot is held by another customer")
        await self.session.commit()
        return await self.get_slot(slot_id, refresh=True)

    async def book_slot(self, slot_id: uuid.UUID, customer_id: uuid.UUID, now: datetime) -> Slot:
        """Flip the slot to booked inside the caller's transaction.

        The caller commits (together with the appointment row) or rolls back.
        """
        await self.get_slot(slot_id)
        if not await self.repo.try_book(slot_id, customer_id, now):
            raise SlotUnavailableError("Slot is not available")
        return await self.get_slot(slot_id, refresh=True)

    async def release_slot(self, slot_id: uuid.UUID) -> bool:
        """Put a booked slot back to available inside the caller's transaction."""
        released = await self.repo.release(slot_id)
        if not released:
            logger.warning(f"Slot {slot_id} was not booked when releasing")
        return released

    async def release_unreferenced(self, slot_id: uuid.UUID) -> Slot:
        await self.get_slot(slot_id)
        if await self.repo.count_active_appointments(slot_id):
            raise ConflictError("Slot still has an active appointment")
        await self.release_slot(slot_id)
        await self.session.commit()
        return await self.get_slot(slot_id, refresh=True)

    async def delete_slot(self, slot_id: uuid.UUID, now: datetime | None = None) -> Slot:
        slot = await self.get_slot(slot_id)
        if not await self.repo.soft_delete(slot_id, now or utcnow()):
            raise ConflictError("Cannot delete a booked slot")
        await OutboxService(self.session).enqueue("SLOT_DELETED", "slot", slot_id, {})
        await self.session.commit()
        await self.session.refresh(slot)
        return slot
