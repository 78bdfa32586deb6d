"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from realtime_service.app.exception_handlers import configure_exception_handlers
from realtime_service.app.lifespan import lifespan
from realtime_service.app.router import setup_routers
from realtime_service.core.settings import get_app_settings


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_app_settings()

    app = FastAPI(
        title=settings.title,
        description=settings.description,
        version=settings.version,
        docs_url=settings.docs_url,
        redoc_url=None,
        openapi_url=settings.openapi_url,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.realtime_manager = None

    configure_exception_handlers(app)
    setup_routers(app, settings)

    return app


# Application instance for uvicorn
app = create_app()
