"""API routers for the Bát Cơm Mặn payment backend."""
from fastapi import APIRouter

from . import health, payments, payos, reminders, sms


def get_api_router() -> APIRouter:
    """Return the root API router; everything but health lives under ``/api``."""

    api_router = APIRouter()
    api_router.include_router(health.router)

    business = APIRouter(prefix="/api")
    business.include_router(payos.router)
    business.include_router(sms.router)
    business.include_router(payments.router)
    business.include_router(reminders.router)
    api_router.include_router(business)
    return api_router
