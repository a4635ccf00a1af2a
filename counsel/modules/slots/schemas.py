import uuid
from datetime import date, datetime
from typing import Literal
from pydantic import BaseModel, Field
from counsel.modules.slots.models import SlotStatus

class SlotWindow(BaseModel):
    start_time: datetime
    end_time: datetime

class SlotsCreate(BaseModel):
    consultant_id: uuid.UUID
    slots: list[SlotWindow] = Field(min_length=1)

class SlotsQuery(BaseModel):
    consultant_id: uuid.UUID | None = None
    start: datetime | None = None
    end: datetime | None = None
    status: SlotStatus | None = None

class SlotOut(BaseModel):
    id: uuid.UUID
    consultant_id: uuid.UUID
    start_time: datetime
    end_time: datetime
    status: SlotStatus
    held_by: uuid.UUID | None = None
    hold_expires_at: datetime | None = None

    class Config:
        from_attributes = True

class SlotsCreated(BaseModel):
    created: list[SlotOut]
    skipped: int

class OpenConsultant(BaseModel):
    consultant_id: uuid.UUID
    slot_id: uuid.UUID

class HourBlock(BaseModel):
    time: str  # "HH:00" local time
    status: Literal["available", "none"]
    consultants: list[OpenConsultant]

class DayAvailability(BaseModel):
    date: date
    slots: list[HourBlock]
