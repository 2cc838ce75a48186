"""Application lifecycle: startup and shutdown of the sync engine.

Startup:
1. logging
2. database (tables auto-created outside production; production runs
   `alembic upgrade head` before starting the app)
3. SyncEngine with the host-provided ports, stored on app.state
4. worker + scheduler loops

Shutdown runs in reverse, always, even if startup failed halfway.
"""

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from fastapi import FastAPI

from reelsync.application.engine import SyncEngine
from reelsync.config import Settings
from reelsync.domain.ports import ICache, IContentSource, ISyncedRecordStore, ISyncExecutor
from reelsync.infrastructure.observability.logging import configure_logging
from reelsync.infrastructure.persistence.database import Database

logger = logging.getLogger(__name__)


def create_lifespan(
    settings: Settings,
    executor: ISyncExecutor | None = None,
    content_source: IContentSource | None = None,
    cache: ICache | None = None,
    record_store: ISyncedRecordStore | None = None,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Build the FastAPI lifespan for the given settings and host ports."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        configure_logging(
            log_level=settings.log_level,
            json_format=settings.observability.log_json_format,
            app_name=settings.app_name,
        )
        logger.info("Starting application: %s", settings.app_name)

        db: Database | None = None
        engine: SyncEngine | None = None
        try:
            db = Database(settings)
            app.state.db = db
            if settings.app_env != "production":
                await db.create_tables()
            logger.info("Database initialized: %s", settings.database.url)

            engine = SyncEngine(
                settings=settings,
                database=db,
                executor=executor,
                content_source=content_source,
                cache=cache,
                record_store=record_store,
            )
            app.state.sync_engine = engine
            await engine.start()

            yield
        finally:
            logger.info("Shutting down application")
            if engine is not None:
                await engine.stop()
            if db is not None:
                await db.close()
            logger.info("Application shutdown complete")

    return lifespan
