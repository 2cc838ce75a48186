"""FastAPI dependencies for the operator API."""

from typing import cast

from fastapi import Depends, Request

from reelsync.application.engine import SyncEngine
from reelsync.application.services.sync_operations import SyncOperations
from reelsync.domain.exceptions import ConfigurationError


# Hey future me, the engine is built in the lifespan (infrastructure/lifecycle.py) and
# parked on app.state. If it's missing the app started without a lifespan - that's a
# wiring problem, hence ConfigurationError -> 503.
def get_sync_engine(request: Request) -> SyncEngine:
    """Get the sync engine from app state."""
    engine = getattr(request.app.state, "sync_engine", None)
    if engine is None:
        raise ConfigurationError("Sync engine is not initialized")
    return cast(SyncEngine, engine)


def get_sync_operations(
    engine: SyncEngine = Depends(get_sync_engine),
) -> SyncOperations:
    return engine.operations
