import uuid
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from counsel.modules.payments.models import PaymentStatus, PaymentMethod

class PaymentCreate(BaseModel):
    appointment_id: uuid.UUID
    payment_method: PaymentMethod
    description: str | None = Field(default=None, max_length=500)

class PaymentOutcome(BaseModel):
    status: PaymentStatus
    transaction_no: str | None = Field(default=None, max_length=128)
    failure_reason: str | None = None

class PaymentWebhook(PaymentOutcome):
    payment_link_id: str

class PaymentOut(BaseModel):
    id: uuid.UUID
    appointment_id: uuid.UUID
    account_id: uuid.UUID
    total_price: Decimal
    payment_method: PaymentMethod
    status: PaymentStatus
    payment_link_id: str
    date: datetime
    description: str | None = None
    transaction_no: str | None = None
    failure_reason: str | None = None
    version: int

    class Config:
        from_attributes = True

class RevenueTotal(BaseModel):
    total: Decimal
    count: int

class PeriodRevenue(RevenueTotal):
    start: datetime
    end: datetime
    daily: list[Decimal]
    year: int | None = None
    month: int | None = None

class YearRevenue(RevenueTotal):
    year: int
    monthly: list[Decimal]
    monthly_count: list[int]

class ServiceRevenue(BaseModel):
    service_id: uuid.UUID
    service_name: str
    total: Decimal
    count: int
