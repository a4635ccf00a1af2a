import re
import uuid
import logging
from datetime import datetime
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from counsel.core.base import utcnow
from counsel.core.errors import NotFoundError, ValidationError, ConflictError, InvalidStateError, WindowClosedError, missing_fields_error
from counsel.modules.appointments.repository import AppointmentRepository
from counsel.modules.appointments.models import AppointmentStatus
from counsel.modules.slots.repository import SlotRepository
from counsel.modules.reports.repository import ReportRepository
from counsel.modules.reports.schemas import ReportSubmit
from counsel.modules.reports.models import Report
from counsel.modules.reports.policy import check_edit_window
from counsel.modules.events.outbox import OutboxService

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name_of_patient", "age", "gender", "condition")

_AGE_RE = re.compile(r"^\s*(\d{1,3})\b")

def coerce_age(value) -> int:
    """Accepts 34, "34" or free text such as "34 years"."""
    if isinstance(value, bool):
        raise ValidationError("Age must be a number", fields=["age"])
    if isinstance(value, int):
        age = value
    else:
        m = _AGE_RE.match(str(value))
        if not m:
            raise ValidationError("Age must be a number", fields=["age"])
        age = int(m.group(1))
    if age < 0 or age > 150:
        raise ValidationError("Age is out of range", fields=["age"])
    return age

def _blank(v) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())

def _apply(report: Report, fields: dict):
    for k, v in fields.items():
        setattr(report, k, v)
    report.version = report.version + 1

class ReportService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.reports = ReportRepository(session)
        self.appts = AppointmentRepository(session)
        self.slots = SlotRepository(session)

    async def submit_report(self, payload: ReportSubmit, now: datetime | None = None) -> tuple[Report, bool]:
        """Create the report for an appointment, or update the existing one.

        Every check runs before anything is written. Returns the report and
        whether it was newly created.
        """
        now = now or utcnow()
        missing = [f for f in REQUIRED_FIELDS if _blank(getattr(payload, f))]
        if missing:
            raise missing_fields_error(missing)
        age = coerce_age(payload.age)

        appt = await self.appts.get(payload.appointment_id)
        if not appt:
            raise NotFoundError("Appointment not found")
        if appt.status == AppointmentStatus.completed:
            raise WindowClosedError("Report is read-only once the appointment is completed")
        if appt.status != AppointmentStatus.confirmed:
            raise InvalidStateError(f"Reports can only be written for confirmed appointments (status is {appt.status.value})")
        slot = await self.slots.get(appt.slot_id)
        if not slot:
            raise NotFoundError("Slot not found")
        check_edit_window(slot, now)

        fields = dict(
            name_of_patient=payload.name_of_patient.strip(),
            age=age,
            gender=payload.gender.strip(),
            condition=payload.condition.strip(),
            notes=payload.notes,
            recommendations=payload.recommendations,
            status=payload.status,
            report_date=now,
        )
        appt_id = appt.id
        report = await self.reports.get_by_appointment(appt_id)
        created = report is None
        try:
            if created:
                report = await self.reports.create(appointment_id=appt_id, account_id=appt.customer_id, consultant_id=appt.consultant_id, **fields)
            else:
                _apply(report, fields)
            await self._submitted(report, appt_id, created)
            await self.session.commit()
        except IntegrityError:
            # a concurrent first submission inserted the report; apply this one on top
            await self.session.rollback()
            report = await self.reports.get_by_appointment(appt_id, refresh=True)
            if not report:
                raise ConflictError("Report could not be saved")
            created = False
            _apply(report, fields)
            await self._submitted(report, appt_id, created)
            await self.session.commit()

        logger.info(f"Report {'created' if created else 'updated'} for appointment {appt_id}")
        return report, created

    async def _submitted(self, report: Report, appt_id: uuid.UUID, created: bool):
        await OutboxService(self.session).enqueue(
            "REPORT_SUBMITTED", "appointment", appt_id,
            {"report_id": str(report.id), "created": created}
        )

    async def get_for_appointment(self, appointment_id: uuid.UUID) -> Report:
        report = await self.reports.get_by_appointment(appointment_id)
        if not report:
            raise NotFoundError("Report not found")
        return report

    async def list_by_consultant(self, consultant_id: uuid.UUID, limit: int = 50, offset: int = 0):
        return await self.reports.list(consultant_id=consultant_id, limit=limit, offset=offset)

    async def list_by_account(self, account_id: uuid.UUID, limit: int = 50, offset: int = 0):
        return await self.reports.list(account_id=account_id, limit=limit, offset=offset)
