import enum
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Numeric, Enum as SAEnum
from counsel.core.base import Base, TimestampedMixin

class ServiceStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"

# Consultation offering; its price is snapshotted onto payments at creation time
class Service(Base, TimestampedMixin):
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    status: Mapped[ServiceStatus] = mapped_column(SAEnum(ServiceStatus, native_enum=False, length=16), default=ServiceStatus.active)
