"""HTTP endpoints module."""

from fastapi import APIRouter

from autoreject.api.cron import router as cron_router
from autoreject.api.webhooks import router as webhooks_router

api_router = APIRouter()

api_router.include_router(webhooks_router)
api_router.include_router(cron_router)

__all__ = ["api_router"]
