import uuid
from datetime import datetime
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from counsel.core.base import utcnow
from counsel.core.db import get_session
from counsel.core.security import get_principal, require_roles, Principal
from counsel.modules.payments.service import PaymentService
from counsel.modules.appointments.schemas import AppointmentOut
from counsel.modules.payments.schemas import PaymentCreate, PaymentOutcome, PaymentOut, RevenueTotal, ServiceRevenue, PeriodRevenue, YearRevenue

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> PaymentService:
    return PaymentService(session)

@router.post("/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
async def create_payment(payload: PaymentCreate, principal: Principal = Depends(require_roles("customer")), service: PaymentService = Depends(svc)):
    appt = await service.appointments.get(payload.appointment_id)
    if not principal.is_admin and appt.customer_id != principal.user_id:
        raise HTTPException(status_code=403, detail="Customers can only pay for their own appointments")
    return await service.create_payment(appt.customer_id, payload)

# Provider callback; authenticated by body signature rather than a bearer token
@router.post("/payments/webhook", response_model=PaymentOut)
async def payment_webhook(request: Request, x_signature: str | None = Header(default=None), service: PaymentService = Depends(svc)):
    body = await request.body()
    return await service.handle_webhook(body, x_signature)

@router.get("/payments/statistics/total", response_model=RevenueTotal, dependencies=[Depends(require_roles("admin"))])
async def revenue_total(service: PaymentService = Depends(svc)):
    return await service.revenue_total()

@router.get("/payments/statistics/by-service", response_model=list[ServiceRevenue], dependencies=[Depends(require_roles("admin"))])
async def revenue_by_service(service: PaymentService = Depends(svc)):
    return await service.revenue_by_service()

@router.get("/payments/statistics/weekly", response_model=PeriodRevenue, dependencies=[Depends(require_roles("admin"))])
async def revenue_weekly(at: datetime | None = None, service: PaymentService = Depends(svc)):
    return await service.revenue_weekly(at)

@router.get("/payments/statistics/monthly", response_model=PeriodRevenue, dependencies=[Depends(require_roles("admin"))])
async def revenue_monthly(
    year: int | None = Query(default=None, ge=1970, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    service: PaymentService = Depends(svc),
):
    today = utcnow()
    return await service.revenue_monthly(year or today.year, month or today.month)

@router.get("/payments/statistics/yearly", response_model=YearRevenue, dependencies=[Depends(require_roles("admin"))])
async def revenue_yearly(year: int | None = Query(default=None, ge=1970, le=9999), service: PaymentService = Depends(svc)):
    return await service.revenue_yearly(year or utcnow().year)

@router.get("/payments/by-appointment/{appointment_id}", response_model=list[PaymentOut])
async def list_for_appointment(appointment_id: uuid.UUID, principal: Principal = Depends(get_principal), service: PaymentService = Depends(svc)):
    appt = await service.appointments.get(appointment_id)
    if not (principal.is_admin or appt.customer_id == principal.user_id or principal.consultant_id == appt.consultant_id):
        raise HTTPException(status_code=403, detail="Not allowed to read these payments")
    return await service.list_for_appointment(appointment_id)

# Rescheduled booking reuses the payment made for the appointment it replaced
@router.post("/payments/by-appointment/{appointment_id}/carry-over", response_model=AppointmentOut)
async def carry_over_payment(appointment_id: uuid.UUID, principal: Principal = Depends(require_roles("customer")), service: PaymentService = Depends(svc)):
    appt = await service.appointments.get(appointment_id)
    if not principal.is_admin and appt.customer_id != principal.user_id:
        raise HTTPException(status_code=403, detail="Customers can only confirm their own appointments")
    return await service.confirm_carried_over(appointment_id)

@router.get("/payments/{payment_id}", response_model=PaymentOut)
async def get_payment(payment_id: uuid.UUID, principal: Principal = Depends(get_principal), service: PaymentService = Depends(svc)):
    payment = await service.get(payment_id)
    if not principal.is_admin and payment.account_id != principal.user_id:
        raise HTTPException(status_code=403, detail="Not allowed to read this payment")
    return payment

@router.post("/payments/{payment_id}/outcome", response_model=PaymentOut, dependencies=[Depends(require_roles("admin"))])
async def record_outcome(payment_id: uuid.UUID, payload: PaymentOutcome, service: PaymentService = Depends(svc)):
    return await service.record_payment_outcome(payment_id, payload)
