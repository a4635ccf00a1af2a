import enum
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Numeric, TIMESTAMP, ForeignKey, Enum as SAEnum
from counsel.core.base import Base, TimestampedMixin

class PaymentStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"

class PaymentMethod(str, enum.Enum):
    paypal = "paypal"
    momo = "momo"
    vnpay = "vnpay"
    cash = "cash"
    other = "other"

class Payment(Base, TimestampedMixin):
    appointment_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("appointment.id"), index=True)
    account_id: Mapped[uuid.UUID] = mapped_column(index=True)
    # service price at the moment the payment was created
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    payment_method: Mapped[PaymentMethod] = mapped_column(SAEnum(PaymentMethod, native_enum=False, length=16))
    status: Mapped[PaymentStatus] = mapped_column(SAEnum(PaymentStatus, native_enum=False, length=16), default=PaymentStatus.pending)
    payment_link_id: Mapped[str] = mapped_column(String(64), unique=True)
    date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    transaction_no: Mapped[str | None] = mapped_column(String(128), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
