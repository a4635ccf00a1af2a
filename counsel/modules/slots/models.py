import enum
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import TIMESTAMP, Index, Enum as SAEnum
from counsel.core.base import Base, TimestampedMixin

class SlotStatus(str, enum.Enum):
    available = "available"
    booked = "booked"
    cancelled = "cancelled"
    deleted = "deleted"

# Bookable window offered by a consultant. `status` is the contended field:
# it only moves available -> booked through a conditional update.
class Slot(Base, TimestampedMixin):
    __table_args__ = (Index("ix_slot_consultant_start", "consultant_id", "start_time"),)

    consultant_id: Mapped[uuid.UUID] = mapped_column()
    start_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    end_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    status: Mapped[SlotStatus] = mapped_column(SAEnum(SlotStatus, native_enum=False, length=16), default=SlotStatus.available)

    # short-lived hold while a customer goes through checkout
    held_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    hold_expires_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
