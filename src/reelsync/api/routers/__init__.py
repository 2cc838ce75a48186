"""API router initialization."""

# Mounted at /api in main.py, so endpoints end up under /api/sync/...
from fastapi import APIRouter

from reelsync.api.routers import sync

api_router = APIRouter()
api_router.include_router(sync.router)

__all__ = ["api_router"]
