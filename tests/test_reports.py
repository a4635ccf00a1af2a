"""
Consultation reports: edit window, required fields and upsert.
"""

import uuid
from datetime import timedelta

import pytest

from conftest import NOW, SLOT_START, SLOT_END, count_rows
from counsel.core.errors import ValidationError, NotFoundError, InvalidStateError, TooEarlyError, WindowClosedError
from counsel.modules.appointments.schemas import AppointmentCreate
from counsel.modules.appointments.service import AppointmentService
from counsel.modules.reports.models import Report, ReportStatus
from counsel.modules.reports.policy import can_create_or_edit, check_edit_window
from counsel.modules.reports.schemas import ReportSubmit
from counsel.modules.reports.service import ReportService, coerce_age


@pytest.fixture
async def appointment(session, slot, service, customer_id):
    svc = AppointmentService(session)
    appt = await svc.create_appointment(customer_id, AppointmentCreate(slot_id=slot.id, service_id=service.id), now=NOW)
    return await svc.confirm_appointment(appt.id)


def report(appointment_id, **overrides):
    data = dict(appointment_id=appointment_id, name_of_patient="Lan", age="29", gender="female", condition="Anxiety")
    data.update(overrides)
    return ReportSubmit(**data)


class TestEditWindowPolicy:
    async def test_boundaries(self, slot):
        assert not can_create_or_edit(slot, SLOT_START - timedelta(minutes=11))
        assert can_create_or_edit(slot, SLOT_START - timedelta(minutes=10))
        assert can_create_or_edit(slot, SLOT_START - timedelta(minutes=9))
        assert can_create_or_edit(slot, SLOT_END)
        assert not can_create_or_edit(slot, SLOT_END + timedelta(minutes=1))

    async def test_check_raises_by_side(self, slot):
        with pytest.raises(TooEarlyError):
            check_edit_window(slot, SLOT_START - timedelta(minutes=11))
        with pytest.raises(WindowClosedError):
            check_edit_window(slot, SLOT_END + timedelta(minutes=1))
        check_edit_window(slot, SLOT_START)

    async def test_custom_lead(self, slot):
        assert can_create_or_edit(slot, SLOT_START - timedelta(minutes=25), lead_minutes=30)


class TestAgeCoercion:
    @pytest.mark.parametrize("raw,expected", [(29, 29), ("29", 29), (" 41 ", 41), ("34 years", 34)])
    def test_accepted(self, raw, expected):
        assert coerce_age(raw) == expected

    @pytest.mark.parametrize("raw", ["twenty", "", "-3", 200, True])
    def test_rejected(self, raw):
        with pytest.raises(ValidationError):
            coerce_age(raw)


class TestSubmitReport:
    async def test_window_scenario(self, session, appointment):
        svc = ReportService(session)
        appt_id = appointment.id

        with pytest.raises(TooEarlyError):
            await svc.submit_report(report(appt_id), now=SLOT_START - timedelta(minutes=11))
        assert await count_rows(session, Report) == 0

        saved, created = await svc.submit_report(report(appt_id), now=SLOT_START - timedelta(minutes=9))
        assert created is True
        assert saved.age == 29
        assert saved.status == ReportStatus.approved

        with pytest.raises(WindowClosedError):
            await svc.submit_report(report(appt_id, condition="Changed"), now=SLOT_END + timedelta(minutes=1))
        stored = await svc.get_for_appointment(appt_id)
        assert stored.condition == "Anxiety"

    async def test_second_submit_updates(self, session, appointment):
        svc = ReportService(session)
        first, _ = await svc.submit_report(report(appointment.id), now=SLOT_START)
        second, created = await svc.submit_report(report(appointment.id, notes="Follow up in two weeks"), now=SLOT_START + timedelta(minutes=30))
        assert created is False
        assert second.id == first.id
        assert second.notes == "Follow up in two weeks"
        assert await count_rows(session, Report) == 1

    async def test_simultaneous_first_submissions_end_in_one_report(self, session, session_factory, appointment, monkeypatch):
        appt_id = appointment.id
        first, created = await ReportService(session).submit_report(report(appt_id), now=SLOT_START)
        assert created is True

        async with session_factory() as other:
            late = ReportService(other)
            real_read = late.reports.get_by_appointment
            reads = []

            async def read_before_first_commit(appointment_id, **kw):
                # the first lookup happened before the other submission committed
                reads.append(appointment_id)
                if len(reads) == 1:
                    return None
                return await real_read(appointment_id, **kw)

            monkeypatch.setattr(late.reports, "get_by_appointment", read_before_first_commit)
            second, created = await late.submit_report(report(appt_id, notes="Sleeps better"), now=SLOT_START + timedelta(minutes=5))

        assert created is False
        assert second.id == first.id
        assert second.notes == "Sleeps better"
        assert second.version == first.version + 1
        assert len(reads) == 2
        assert await count_rows(session, Report) == 1
        stored = await ReportService(session).reports.get_by_appointment(appt_id, refresh=True)
        assert stored.notes == "Sleeps better"

    async def test_missing_fields_listed(self, session, appointment):
        with pytest.raises(ValidationError) as exc:
            await ReportService(session).submit_report(report(appointment.id, name_of_patient="  ", gender=None), now=SLOT_START)
        assert exc.value.fields == ["name_of_patient", "gender"]

    async def test_appointment_must_exist(self, session):
        with pytest.raises(NotFoundError):
            await ReportService(session).submit_report(report(uuid.uuid4()), now=SLOT_START)

    async def test_pending_appointment_rejected(self, session, slot, service, customer_id):
        appt = await AppointmentService(session).create_appointment(customer_id, AppointmentCreate(slot_id=slot.id, service_id=service.id), now=NOW)
        with pytest.raises(InvalidStateError):
            await ReportService(session).submit_report(report(appt.id), now=SLOT_START)

    async def test_completed_appointment_is_read_only(self, session, appointment):
        await AppointmentService(session).complete_appointment(appointment.id, now=SLOT_END)
        with pytest.raises(WindowClosedError):
            await ReportService(session).submit_report(report(appointment.id), now=SLOT_END)

    async def test_report_owned_by_appointment_parties(self, session, appointment, consultant_id, customer_id):
        saved, _ = await ReportService(session).submit_report(report(appointment.id), now=SLOT_START)
        assert saved.consultant_id == consultant_id
        assert saved.account_id == customer_id
        svc = ReportService(session)
        assert [r.id for r in await svc.list_by_consultant(consultant_id)] == [saved.id]
        assert [r.id for r in await svc.list_by_account(customer_id)] == [saved.id]
