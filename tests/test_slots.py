"""
Slot registry: bulk creation, listing, holds, booking guard and deletion.
"""

import uuid
from datetime import date, timedelta

import pytest

from conftest import NOW, SLOT_START
from counsel.core.errors import ValidationError, SlotUnavailableError, ForbiddenError, ConflictError, NotFoundError
from counsel.modules.slots.models import SlotStatus
from counsel.modules.slots.schemas import SlotWindow, SlotsQuery
from counsel.modules.slots.service import SlotService, week_bounds


def window(start, minutes=60):
    return SlotWindow(start_time=start, end_time=start + timedelta(minutes=minutes))


class TestWeekBounds:
    def test_monday_start(self):
        start, end = week_bounds(SLOT_START)  # Tuesday
        assert start.weekday() == 0
        assert (start.hour, start.minute) == (0, 0)
        assert end - start == timedelta(days=7)
        assert start <= SLOT_START < end


class TestCreateSlots:
    async def test_creates_available_slots(self, session, consultant_id):
        created, skipped = await SlotService(session).create_slots(
            consultant_id, [window(SLOT_START), window(SLOT_START + timedelta(hours=2))]
        )
        assert len(created) == 2
        assert skipped == 0
        assert all(s.status == SlotStatus.available for s in created)

    async def test_skips_start_times_already_in_the_week(self, session, consultant_id, slot):
        created, skipped = await SlotService(session).create_slots(
            consultant_id, [window(SLOT_START), window(SLOT_START + timedelta(hours=3))]
        )
        assert skipped == 1
        assert len(created) == 1

    async def test_duplicates_inside_one_request_are_skipped(self, session, consultant_id):
        created, skipped = await SlotService(session).create_slots(consultant_id, [window(SLOT_START), window(SLOT_START)])
        assert (len(created), skipped) == (1, 1)

    async def test_other_consultant_is_not_a_duplicate(self, session, slot):
        created, skipped = await SlotService(session).create_slots(uuid.uuid4(), [window(SLOT_START)])
        assert (len(created), skipped) == (1, 0)

    async def test_end_before_start_rejected(self, session, consultant_id):
        with pytest.raises(ValidationError) as exc:
            await SlotService(session).create_slots(
                consultant_id, [window(SLOT_START), SlotWindow(start_time=SLOT_START, end_time=SLOT_START)]
            )
        assert exc.value.fields == ["slots.1"]


class TestListSlots:
    async def test_window_is_start_inclusive_end_exclusive(self, session, make_slot, consultant_id):
        first = await make_slot(SLOT_START)
        await make_slot(SLOT_START + timedelta(hours=2))
        slots = await SlotService(session).list_slots(SlotsQuery(
            consultant_id=consultant_id, start=SLOT_START, end=SLOT_START + timedelta(hours=2)
        ))
        assert [s.id for s in slots] == [first.id]

    async def test_ordered_by_start_and_filtered_by_status(self, session, make_slot):
        later = await make_slot(SLOT_START + timedelta(hours=4))
        earlier = await make_slot(SLOT_START)
        svc = SlotService(session)
        assert [s.id for s in await svc.list_slots(SlotsQuery())] == [earlier.id, later.id]
        assert await svc.list_slots(SlotsQuery(status=SlotStatus.booked)) == []

    async def test_deleted_slots_hidden(self, session, slot):
        svc = SlotService(session)
        slot_id = slot.id
        await svc.delete_slot(slot_id, NOW)
        assert await svc.list_slots(SlotsQuery()) == []
        with pytest.raises(NotFoundError):
            await svc.get_slot(slot_id)


class TestConsultantsByDay:
    # business day is Asia/Ho_Chi_Minh (UTC+7); SLOT_START is 17:00 local
    async def test_hourly_blocks_of_local_day(self, session, make_slot, slot, consultant_id):
        other = uuid.uuid4()
        morning = await make_slot(SLOT_START - timedelta(hours=9), consultant=other)   # 08:00 local
        booked = await make_slot(SLOT_START - timedelta(hours=8), consultant=other)    # 09:00 local
        await make_slot(SLOT_START - timedelta(hours=17), consultant=other)            # 00:00 local, no block
        await make_slot(SLOT_START + timedelta(hours=7), consultant=other)             # next local day
        svc = SlotService(session)
        await svc.book_slot(booked.id, uuid.uuid4(), NOW)
        await session.commit()

        day = await svc.available_consultants_by_day(date(2030, 1, 8))

        assert day["date"] == date(2030, 1, 8)
        blocks = {b["time"]: b for b in day["slots"]}
        assert list(blocks) == [f"{h:02d}:00" for h in range(8, 18)]
        assert blocks["08:00"]["status"] == "available"
        assert blocks["08:00"]["consultants"] == [{"consultant_id": other, "slot_id": morning.id}]
        assert blocks["09:00"]["status"] == "none"
        assert blocks["09:00"]["consultants"] == []
        assert blocks["17:00"]["consultants"] == [{"consultant_id": consultant_id, "slot_id": slot.id}]
        assert sum(len(b["consultants"]) for b in day["slots"]) == 2

    async def test_empty_day(self, session, slot):
        day = await SlotService(session).available_consultants_by_day(date(2030, 1, 9))
        assert {b["status"] for b in day["slots"]} == {"none"}


class TestHolds:
    async def test_hold_blocks_other_customers(self, session, slot):
        svc = SlotService(session)
        first, second = uuid.uuid4(), uuid.uuid4()
        slot_id = slot.id
        held = await svc.hold_slot(slot_id, first, NOW)
        assert held.held_by == first

        with pytest.raises(SlotUnavailableError):
            await svc.hold_slot(slot_id, second, NOW)
        with pytest.raises(SlotUnavailableError):
            await svc.book_slot(slot_id, second, NOW)

    async def test_holder_can_book(self, session, slot):
        svc = SlotService(session)
        customer = uuid.uuid4()
        await svc.hold_slot(slot.id, customer, NOW)
        booked = await svc.book_slot(slot.id, customer, NOW)
        assert booked.status == SlotStatus.booked
        assert booked.held_by is None

    async def test_expired_hold_can_be_taken(self, session, slot):
        svc = SlotService(session)
        await svc.hold_slot(slot.id, uuid.uuid4(), NOW)
        later = NOW + timedelta(hours=1)
        other = uuid.uuid4()
        held = await svc.hold_slot(slot.id, other, later)
        assert held.held_by == other

    async def test_release_hold_of_someone_else_forbidden(self, session, slot):
        svc = SlotService(session)
        await svc.hold_slot(slot.id, uuid.uuid4(), NOW)
        with pytest.raises(ForbiddenError):
            await svc.release_hold(slot.id, uuid.uuid4(), NOW)

    async def test_lapsed_hold_of_someone_else_is_cleared(self, session, slot):
        svc = SlotService(session)
        slot_id = slot.id
        await svc.hold_slot(slot_id, uuid.uuid4(), NOW)
        later = NOW + timedelta(hours=1)
        released = await svc.release_hold(slot_id, uuid.uuid4(), later)
        assert released.held_by is None
        assert released.hold_expires_at is None
        assert released.status == SlotStatus.available

    async def test_release_own_hold(self, session, slot):
        svc = SlotService(session)
        customer = uuid.uuid4()
        await svc.hold_slot(slot.id, customer, NOW)
        released = await svc.release_hold(slot.id, customer)
        assert released.held_by is None


class TestBookingGuard:
    async def test_second_booking_fails(self, session, slot):
        svc = SlotService(session)
        await svc.book_slot(slot.id, uuid.uuid4(), NOW)
        await session.commit()
        with pytest.raises(SlotUnavailableError):
            await svc.book_slot(slot.id, uuid.uuid4(), NOW)

    async def test_release_makes_slot_available_again(self, session, slot):
        svc = SlotService(session)
        await svc.book_slot(slot.id, uuid.uuid4(), NOW)
        assert await svc.release_slot(slot.id) is True
        await session.commit()
        assert (await svc.get_slot(slot.id, refresh=True)).status == SlotStatus.available

    async def test_release_of_available_slot_is_reported(self, session, slot):
        assert await SlotService(session).release_slot(slot.id) is False


class TestDeleteSlot:
    async def test_booked_slot_cannot_be_deleted(self, session, slot):
        svc = SlotService(session)
        await svc.book_slot(slot.id, uuid.uuid4(), NOW)
        await session.commit()
        with pytest.raises(ConflictError):
            await svc.delete_slot(slot.id, NOW)

    async def test_soft_delete_sets_tombstone(self, session, slot):
        deleted = await SlotService(session).delete_slot(slot.id, NOW)
        assert deleted.status == SlotStatus.deleted
        assert deleted.deleted_at is not None
