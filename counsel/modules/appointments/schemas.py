import uuid
from datetime import datetime
from pydantic import BaseModel, Field
from counsel.modules.appointments.models import AppointmentStatus

class AppointmentCreate(BaseModel):
    slot_id: uuid.UUID
    service_id: uuid.UUID
    reason: str | None = Field(default=None, max_length=2000)
    note: str | None = Field(default=None, max_length=2000)
    customer_id: uuid.UUID | None = None  # admins booking on behalf of a customer

class AppointmentStatusChange(BaseModel):
    status: AppointmentStatus
    expected_version: int | None = None

class RescheduleRequest(BaseModel):
    new_slot_id: uuid.UUID
    new_consultant_id: uuid.UUID | None = None

class MeetLinkUpdate(BaseModel):
    meet_link: str | None = Field(default=None, max_length=255)

class AppointmentOut(BaseModel):
    id: uuid.UUID
    slot_id: uuid.UUID
    customer_id: uuid.UUID
    consultant_id: uuid.UUID
    service_id: uuid.UUID
    date_booking: datetime
    reason: str | None = None
    note: str | None = None
    status: AppointmentStatus
    is_rescheduled: bool
    rescheduled_from_id: uuid.UUID | None = None
    meet_link: str | None = None
    payment_details: dict | None = None
    version: int
    created_at: datetime

    class Config:
        from_attributes = True
