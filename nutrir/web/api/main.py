"""Main FastAPI application for Nutrir realtime notifications.

This module sets up the FastAPI application with its routes, middleware and
the lifespan that owns the realtime components: they are created at startup,
bound to the server event loop, and torn down at shutdown.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nutrir.infrastructure.settings import APP_VERSION, get_settings
from nutrir.web.api.logging_config import setup_logging
from nutrir.web.api.middleware import setup_middleware
from nutrir.web.api.routes import health, notifications, websocket
from nutrir.web.services.realtime import create_realtime_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    services = create_realtime_services()
    services.bind_loop(asyncio.get_running_loop())
    app.state.realtime = services
    logger.info(f"{app.title} starting up...")
    logger.info("API documentation available at /api/docs")
    try:
        yield
    finally:
        logger.info(f"{app.title} shutting down...")
        await services.shutdown()
        app.state.realtime = None


def create_app() -> FastAPI:
    """Build the application (a fresh set of realtime components per lifespan)."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Real-time change notifications for the Nutrir practice management application",
        version=APP_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Process-Time"],
    )

    setup_middleware(app)

    app.include_router(health.router)
    app.include_router(notifications.router)
    app.include_router(websocket.router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": settings.app_name,
            "version": APP_VERSION,
            "docs": "/api/docs",
            "health": "/api/health",
            "websocket": "/ws/notifications",
            "stream": "/api/notifications/stream",
        }

    return app


_settings = get_settings()
setup_logging(use_json=_settings.json_logs, log_level=_settings.log_level)

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "nutrir.web.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
