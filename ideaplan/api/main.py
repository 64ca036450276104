from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ideaplan import __version__
from ideaplan.core.db import init_schema
from ideaplan.core.errors import IdeaPlanError
from ideaplan.core.obs_logging import configure_logging
from ideaplan.core.settings import Settings, settings as default_settings
from ideaplan.services.container import ServiceContainer

from .routers.chat import router as chat_router
from .routers.plans import router as plans_router
from .routers.presence import router as presence_router
from .routers.shares import router as shares_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    """
    Build the application.

    Tests pass a ready container; otherwise one is built from settings at
    startup and closed on shutdown.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
        owned = container is None
        app.state.container = container or ServiceContainer(settings)
        init_schema(app.state.container.engine)
        logger.info("Started %s %s", settings.APP_NAME, __version__)
        yield
        if owned:
            try:
                await app.state.container.close()
            except Exception as e:
                logger.warning(f"Shutdown warning: {e}")

    app = FastAPI(title=f"{settings.APP_NAME} - API", version=__version__, lifespan=lifespan)

    @app.exception_handler(IdeaPlanError)
    async def domain_error_handler(request: Request, exc: IdeaPlanError):
        if exc.status_code >= 500:
            logger.error("Request %s failed: %s", request.url.path, exc, exc_info=exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "detail": str(exc)},
        )

    @app.exception_handler(ValueError)
    async def invalid_request_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content={"error": "INVALID_REQUEST", "detail": str(exc)},
        )

    @app.get("/health")
    def health():
        return {"status": "ok", "service": settings.APP_NAME, "version": __version__}

    app.include_router(plans_router)
    app.include_router(shares_router)
    app.include_router(presence_router)
    app.include_router(chat_router)
    return app


app = create_app()
