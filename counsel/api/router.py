from fastapi import APIRouter
from counsel.modules.services.router import router as services_router
from counsel.modules.slots.router import router as slots_router
from counsel.modules.appointments.router import router as appointments_router
from counsel.modules.reports.router import router as reports_router
from counsel.modules.payments.router import router as payments_router

api_router = APIRouter()
api_router.include_router(services_router, tags=["services"])
api_router.include_router(slots_router, tags=["slots"])
api_router.include_router(appointments_router, tags=["appointments"])
api_router.include_router(reports_router, tags=["reports"])
api_router.include_router(payments_router, tags=["payments"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
