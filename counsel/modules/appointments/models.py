import enum
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, TIMESTAMP, ForeignKey, JSON, Boolean, UniqueConstraint, Enum as SAEnum
from counsel.core.base import Base, TimestampedMixin

class AppointmentStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"
    rescheduled = "rescheduled"

# statuses that keep the slot occupied
ACTIVE_STATUSES = (AppointmentStatus.pending, AppointmentStatus.confirmed, AppointmentStatus.completed)

VALID_NEXT: dict[AppointmentStatus, set[AppointmentStatus]] = {
    AppointmentStatus.pending: {AppointmentStatus.confirmed, AppointmentStatus.cancelled},
    AppointmentStatus.confirmed: {AppointmentStatus.completed, AppointmentStatus.cancelled, AppointmentStatus.rescheduled},
    AppointmentStatus.completed: set(),
    AppointmentStatus.cancelled: set(),
    AppointmentStatus.rescheduled: set(),
}

class Appointment(Base, TimestampedMixin):
    __table_args__ = (UniqueConstraint("customer_id", "idempotency_key", name="uq_appointment_customer_idem"),)

    slot_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("slot.id"), index=True)
    customer_id: Mapped[uuid.UUID] = mapped_column(index=True)
    consultant_id: Mapped[uuid.UUID] = mapped_column(index=True)
    service_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("service.id"))

    date_booking: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))  # slot start at booking time
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[AppointmentStatus] = mapped_column(SAEnum(AppointmentStatus, native_enum=False, length=16), default=AppointmentStatus.pending)

    # set on both sides of a reschedule; an appointment is rescheduled at most once
    is_rescheduled: Mapped[bool] = mapped_column(Boolean, default=False)
    rescheduled_from_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("appointment.id"), nullable=True)

    meet_link: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # transaction_no, amount, payment_time, payment_method, failure_reason
    payment_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    idempotency_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
