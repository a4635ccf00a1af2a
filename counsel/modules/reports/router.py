import uuid
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from counsel.core.db import get_session
from counsel.core.errors import NotFoundError
from counsel.core.security import get_principal, require_roles, Principal
from counsel.modules.appointments.repository import AppointmentRepository
from counsel.modules.reports.service import ReportService
from counsel.modules.reports.schemas import ReportSubmit, ReportOut

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> ReportService:
    return ReportService(session)

@router.post("/reports", response_model=ReportOut)
async def submit_report(
    payload: ReportSubmit,
    response: Response,
    principal: Principal = Depends(require_roles("consultant")),
    service: ReportService = Depends(svc),
):
    if not principal.is_admin:
        appt = await AppointmentRepository(service.session).get(payload.appointment_id)
        if not appt:
            raise NotFoundError("Appointment not found")
        if principal.consultant_id != appt.consultant_id:
            raise HTTPException(status_code=403, detail="Only the assigned consultant can write this report")
    report, created = await service.submit_report(payload)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return report

@router.get("/reports/appointment/{appointment_id}", response_model=ReportOut)
async def get_report(appointment_id: uuid.UUID, principal: Principal = Depends(get_principal), service: ReportService = Depends(svc)):
    report = await service.get_for_appointment(appointment_id)
    allowed = (
        principal.is_admin
        or principal.user_id == report.account_id
        or (principal.consultant_id is not None and principal.consultant_id == report.consultant_id)
    )
    if not allowed:
        raise HTTPException(status_code=403, detail="Not allowed to read this report")
    return report

@router.get("/reports/consultant/{consultant_id}", response_model=list[ReportOut])
async def list_for_consultant(
    consultant_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
    principal: Principal = Depends(require_roles("consultant")),
    service: ReportService = Depends(svc),
):
    if not principal.is_admin and principal.consultant_id != consultant_id:
        raise HTTPException(status_code=403, detail="Consultants can only list their own reports")
    return await service.list_by_consultant(consultant_id, limit, offset)

@router.get("/reports/account/{account_id}", response_model=list[ReportOut], dependencies=[Depends(require_roles("consultant"))])
async def list_for_account(account_id: uuid.UUID, limit: int = 50, offset: int = 0, service: ReportService = Depends(svc)):
    return await service.list_by_account(account_id, limit, offset)
