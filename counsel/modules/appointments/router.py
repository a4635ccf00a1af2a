import uuid
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from counsel.core.db import get_session
from counsel.core.security import get_principal, require_roles, Principal
from counsel.modules.appointments.service import AppointmentService
from counsel.modules.appointments.models import Appointment, AppointmentStatus
from counsel.modules.appointments.schemas import (
    AppointmentCreate, AppointmentStatusChange, RescheduleRequest, MeetLinkUpdate, AppointmentOut
)

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> AppointmentService:
    return AppointmentService(session)

def _is_owner(principal: Principal, appt: Appointment) -> bool:
    return principal.user_id == appt.customer_id

def _is_assigned(principal: Principal, appt: Appointment) -> bool:
    return principal.consultant_id is not None and principal.consultant_id == appt.consultant_id

def ensure_can_view(principal: Principal, appt: Appointment):
    if principal.is_admin or _is_owner(principal, appt) or _is_assigned(principal, appt):
        return
    raise HTTPException(status_code=403, detail="Not allowed to access this appointment")

@router.post("/appointments", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    payload: AppointmentCreate,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=64),
    principal: Principal = Depends(require_roles("customer")),
    service: AppointmentService = Depends(svc),
):
    customer_id = payload.customer_id if (principal.is_admin and payload.customer_id) else principal.user_id
    return await service.create_appointment(customer_id, payload, idempotency_key)

@router.get("/appointments/consultant/{consultant_id}", response_model=list[AppointmentOut])
async def list_for_consultant(
    consultant_id: uuid.UUID,
    status: AppointmentStatus | None = None,
    limit: int = 50,
    offset: int = 0,
    principal: Principal = Depends(require_roles("consultant")),
    service: AppointmentService = Depends(svc),
):
    if not principal.is_admin and principal.consultant_id != consultant_id:
        raise HTTPException(status_code=403, detail="Consultants can only list their own appointments")
    return await service.list_by_consultant(consultant_id, status, limit, offset)

@router.get("/appointments/customer/{customer_id}", response_model=list[AppointmentOut])
async def list_for_customer(
    customer_id: uuid.UUID,
    status: AppointmentStatus | None = None,
    limit: int = 50,
    offset: int = 0,
    principal: Principal = Depends(require_roles("customer")),
    service: AppointmentService = Depends(svc),
):
    if not principal.is_admin and principal.user_id != customer_id:
        raise HTTPException(status_code=403, detail="Customers can only list their own appointments")
    return await service.list_by_customer(customer_id, status, limit, offset)

@router.get("/appointments/slot/{slot_id}", response_model=list[AppointmentOut], dependencies=[Depends(require_roles("consultant"))])
async def list_for_slot(slot_id: uuid.UUID, service: AppointmentService = Depends(svc)):
    return await service.list_by_slot(slot_id)

@router.get("/appointments/{appt_id}", response_model=AppointmentOut)
async def get_appointment(appt_id: uuid.UUID, principal: Principal = Depends(get_principal), service: AppointmentService = Depends(svc)):
    appt = await service.get(appt_id)
    ensure_can_view(principal, appt)
    return appt

@router.put("/appointments/{appt_id}/status", response_model=AppointmentOut)
async def change_status(
    appt_id: uuid.UUID,
    payload: AppointmentStatusChange,
    principal: Principal = Depends(require_roles("consultant", "customer")),
    service: AppointmentService = Depends(svc),
):
    appt = await service.get(appt_id)
    if not principal.is_admin and not _is_assigned(principal, appt):
        # customers may only cancel their own booking
        if not (_is_owner(principal, appt) and payload.status == AppointmentStatus.cancelled):
            raise HTTPException(status_code=403, detail="Not allowed to change this appointment")
    return await service.change_status(appt_id, payload.status, payload.expected_version)

@router.put("/appointments/{appt_id}/reschedule", response_model=AppointmentOut)
async def reschedule(
    appt_id: uuid.UUID,
    payload: RescheduleRequest,
    principal: Principal = Depends(require_roles("customer")),
    service: AppointmentService = Depends(svc),
):
    appt = await service.get(appt_id)
    if not principal.is_admin and not _is_owner(principal, appt):
        raise HTTPException(status_code=403, detail="Only the customer can reschedule this appointment")
    return await service.reschedule_appointment(appt_id, payload.new_slot_id, payload.new_consultant_id)

@router.put("/appointments/{appt_id}/meet-link", response_model=AppointmentOut)
async def set_meet_link(
    appt_id: uuid.UUID,
    payload: MeetLinkUpdate,
    principal: Principal = Depends(require_roles("consultant")),
    service: AppointmentService = Depends(svc),
):
    appt = await service.get(appt_id)
    if not principal.is_admin and not _is_assigned(principal, appt):
        raise HTTPException(status_code=403, detail="Only the assigned consultant can set the meet link")
    return await service.set_meet_link(appt_id, payload.meet_link)
