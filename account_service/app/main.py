"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from account_service.app.lifespan import lifespan
from account_service.app.router import setup_routers
from account_service.core.settings import get_settings


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app_settings = get_settings().app

    app = FastAPI(
        title=app_settings.title,
        version=app_settings.version,
        debug=app_settings.debug,
        lifespan=lifespan,
    )
    setup_routers(app)
    return app


# Application instance for uvicorn
app = create_app()
