import uuid
from datetime import date, datetime
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from counsel.core.db import get_session
from counsel.core.security import get_principal, require_roles, Principal
from counsel.modules.slots.service import SlotService
from counsel.modules.slots.models import SlotStatus
from counsel.modules.slots.schemas import SlotsCreate, SlotsQuery, SlotOut, SlotsCreated, DayAvailability

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> SlotService:
    return SlotService(session)

@router.get("/slots", response_model=list[SlotOut], dependencies=[Depends(get_principal)])
async def list_slots(
    consultant_id: uuid.UUID | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    status: SlotStatus | None = None,
    service: SlotService = Depends(svc),
):
    return await service.list_slots(SlotsQuery(consultant_id=consultant_id, start=start, end=end, status=status))

@router.get("/slots/available-consultants/{day}", response_model=DayAvailability, dependencies=[Depends(get_principal)])
async def available_consultants_by_day(day: date, service: SlotService = Depends(svc)):
    return await service.available_consultants_by_day(day)

@router.get("/slots/{slot_id}", response_model=SlotOut, dependencies=[Depends(get_principal)])
async def get_slot(slot_id: uuid.UUID, service: SlotService = Depends(svc)):
    return await service.get_slot(slot_id)

@router.post("/slots", response_model=SlotsCreated, status_code=status.HTTP_201_CREATED)
async def create_slots(
    payload: SlotsCreate,
    principal: Principal = Depends(require_roles("consultant")),
    service: SlotService = Depends(svc),
):
    if not principal.is_admin and principal.consultant_id != payload.consultant_id:
        raise HTTPException(status_code=403, detail="Consultants can only create their own slots")
    created, skipped = await service.create_slots(payload.consultant_id, payload.slots)
    return {"created": created, "skipped": skipped}

# Hold while the customer goes through checkout
@router.post("/slots/{slot_id}/hold", response_model=SlotOut)
async def hold_slot(slot_id: uuid.UUID, principal: Principal = Depends(require_roles("customer")), service: SlotService = Depends(svc)):
    return await service.hold_slot(slot_id, principal.user_id)

@router.delete("/slots/{slot_id}/hold", response_model=SlotOut)
async def release_hold(slot_id: uuid.UUID, principal: Principal = Depends(require_roles("customer")), service: SlotService = Depends(svc)):
    return await service.release_hold(slot_id, principal.user_id)

@router.post("/slots/{slot_id}/release", response_model=SlotOut, dependencies=[Depends(require_roles("admin"))])
async def release_slot(slot_id: uuid.UUID, service: SlotService = Depends(svc)):
    return await service.release_unreferenced(slot_id)

@router.delete("/slots/{slot_id}", response_model=SlotOut)
async def delete_slot(slot_id: uuid.UUID, principal: Principal = Depends(require_roles("consultant")), service: SlotService = Depends(svc)):
    slot = await service.get_slot(slot_id)
    if not principal.is_admin and principal.consultant_id != slot.consultant_id:
        raise HTTPException(status_code=403, detail="Consultants can only delete their own slots")
    return await service.delete_slot(slot_id)
