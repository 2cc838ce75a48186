"""HTTP operator API for the sync engine.

Structure:
- routers/: endpoints (mounted under /api in main.py)
- schemas/: pydantic request/response models
- dependencies.py: access to the SyncEngine on app.state
- exception_handlers.py: domain exception -> HTTP status mapping
"""

from reelsync.api.exception_handlers import register_exception_handlers
from reelsync.api.routers import api_router

__all__ = ["api_router", "register_exception_handlers"]
