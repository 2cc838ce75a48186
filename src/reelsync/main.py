"""FastAPI application entry point.

Run with:
    uvicorn reelsync.main:app

The host application embeds the engine by calling create_app() with its own
ports (executor, content source, synced-record store).
"""

from fastapi import FastAPI

from reelsync.api import api_router, register_exception_handlers
from reelsync.config import Settings, get_settings
from reelsync.domain.ports import ICache, IContentSource, ISyncedRecordStore, ISyncExecutor
from reelsync.infrastructure.lifecycle import create_lifespan


def create_app(
    settings: Settings | None = None,
    executor: ISyncExecutor | None = None,
    content_source: IContentSource | None = None,
    cache: ICache | None = None,
    record_store: ISyncedRecordStore | None = None,
) -> FastAPI:
    """Create the operator API app with the sync engine in its lifespan.

    Raises:
        ConfigurationError: Settings from the environment are invalid
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Background metadata sync engine",
        lifespan=create_lifespan(
            settings,
            executor=executor,
            content_source=content_source,
            cache=cache,
            record_store=record_store,
        ),
    )
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
