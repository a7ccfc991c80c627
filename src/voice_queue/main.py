"""
FastAPI Application Entry Point.

Creates the FastAPI application for the voice-queue service: logging
setup, routes, and a shutdown hook that releases this process's voice
claims so other processes see the voices as free immediately.

Usage:
    # Run with uvicorn
    uvicorn voice_queue.main:app --host 127.0.0.1 --port 8000

    # Or through the CLI
    voice-queue --serve --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from voice_queue import __version__
from voice_queue.api.routes import router
from voice_queue.core.logging import configure_logging, get_logger, info
from voice_queue.services.speech_service import peek_service, reset_service

_LOG = get_logger("voice-queue.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    info(_LOG, "app_started", version=__version__)
    yield
    service = peek_service()
    if service is not None:
        await service.aclose()
        reset_service()
    info(_LOG, "app_stopped")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance ready to serve requests.
    """
    # Reads VOICE_QUEUE_LOG_LEVEL and the logging section of settings
    configure_logging()

    app = FastAPI(title="voice-queue", version=__version__, lifespan=lifespan)
    app.include_router(router)
    return app


# Global application instance for ASGI servers
app = create_app()
