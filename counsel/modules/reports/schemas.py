import uuid
from datetime import datetime
from pydantic import BaseModel, Field
from counsel.modules.reports.models import ReportStatus

# required fields are checked by the service so the error can list all missing ones
class ReportSubmit(BaseModel):
    appointment_id: uuid.UUID
    name_of_patient: str | None = Field(default=None, max_length=200)
    age: str | int | None = None
    gender: str | None = Field(default=None, max_length=32)
    condition: str | None = None
    notes: str | None = None
    recommendations: str | None = None
    status: ReportStatus = ReportStatus.approved

class ReportOut(BaseModel):
    id: uuid.UUID
    appointment_id: uuid.UUID
    account_id: uuid.UUID
    consultant_id: uuid.UUID
    name_of_patient: str
    age: int
    gender: str
    condition: str
    notes: str | None = None
    recommendations: str | None = None
    status: ReportStatus
    report_date: datetime
    version: int

    class Config:
        from_attributes = True
