"""
FastAPI Application Entry Point.

Usage:
    # Run with uvicorn
    uvicorn speak_proxy.main:app --host 0.0.0.0 --port 3000

    # Or through the CLI (reads HOST / PORT)
    speak-proxy serve
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from speak_proxy.api.dependencies import get_speak_service
from speak_proxy.api.routes import router
from speak_proxy.core.logging import configure_logging


@asynccontextmanager
async def _lifespan(app: FastAPI):
    # Honour test overrides so startup never builds a second service.
    provider = app.dependency_overrides.get(get_speak_service, get_speak_service)
    service = provider()
    await service.start()
    try:
        yield
    finally:
        await service.close()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function:
        1. Configures logging (operator log on stderr, access log on stdout)
        2. Creates a FastAPI instance with the service title
        3. Registers /speak, /health and /metrics
        4. Opens the provider HTTP client on startup and closes it on shutdown
    """
    configure_logging()

    app = FastAPI(title="speak-proxy", lifespan=_lifespan)
    app.include_router(router)

    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
