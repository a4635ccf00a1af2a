"""When a consultant may write the consultation report.

The report opens a few minutes before the session starts and closes when the
slot ends; after that it is read-only.
"""
from datetime import datetime
from counsel.core.config import settings
from counsel.core.windows import in_window, check_window
from counsel.modules.slots.models import Slot

def can_create_or_edit(slot: Slot, now: datetime, lead_minutes: int | None = None) -> bool:
    lead = settings.REPORT_EDIT_LEAD_MINUTES if lead_minutes is None else lead_minutes
    return in_window(slot.start_time, slot.end_time, now, lead)

def check_edit_window(slot: Slot, now: datetime, lead_minutes: int | None = None) -> None:
    lead = settings.REPORT_EDIT_LEAD_MINUTES if lead_minutes is None else lead_minutes
    check_window(slot.start_time, slot.end_time, now, lead, "edit the report")
