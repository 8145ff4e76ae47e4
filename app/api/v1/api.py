# app/api/v1/api.py

from fastapi import APIRouter
from app.api.v1.endpoints import (
    public,
    tickets,
    gift_codes,
    schedules,
    webhooks,
    realtime,
    health,
)

# Main router for the v1 API; each feature router is mounted here.
api_router = APIRouter()

api_router.include_router(public.router)
api_router.include_router(tickets.router)
api_router.include_router(gift_codes.router)
api_router.include_router(schedules.router)
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
api_router.include_router(realtime.router, prefix="/realtime", tags=["Realtime"])
api_router.include_router(health.router)
