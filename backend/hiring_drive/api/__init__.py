"""HTTP routers."""

from fastapi import APIRouter

from . import drives, health

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(drives.router)

__all__ = ["api_router"]
