import enum
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Integer, TIMESTAMP, ForeignKey, Enum as SAEnum
from counsel.core.base import Base, TimestampedMixin

class ReportStatus(str, enum.Enum):
    approved = "approved"
    pending = "pending"
    rejected = "rejected"

class Report(Base, TimestampedMixin):
    appointment_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("appointment.id"), unique=True)
    account_id: Mapped[uuid.UUID] = mapped_column(index=True)  # the customer
    consultant_id: Mapped[uuid.UUID] = mapped_column(index=True)

    name_of_patient: Mapped[str] = mapped_column(String(200))
    age: Mapped[int] = mapped_column(Integer)
    gender: Mapped[str] = mapped_column(String(32))
    condition: Mapped[str] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recommendations: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ReportStatus] = mapped_column(SAEnum(ReportStatus, native_enum=False, length=16), default=ReportStatus.approved)
    report_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
