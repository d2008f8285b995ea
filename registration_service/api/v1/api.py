# registration_service/api/v1/api.py

from fastapi import APIRouter
from registration_service.api.v1.endpoints import (
    admin,
    categories,
    health,
    payments,
    registrations,
    tickets,
    webhooks,
)

# Main router for the v1 API, mounted under /api/v1 by main.py.
api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(categories.router)
api_router.include_router(registrations.router)
api_router.include_router(tickets.router)
api_router.include_router(payments.router)
api_router.include_router(admin.router)
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
