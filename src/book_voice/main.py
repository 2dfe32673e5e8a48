"""
FastAPI Application Entry Point.

Creates the book-voice application: routes, exception handlers and the
lifespan that owns the service's background work.

Lifespan:
    startup:  VoiceService.start() schedules the retention sweeper
    shutdown: VoiceService.aclose() stops the sweeper, cancels pending
              background generations and closes the HTTP client, then
              drops the global service so a later startup builds a new one

Usage:
    # Run with uvicorn
    uvicorn book_voice.main:app --host 0.0.0.0 --port 8000

    # Or via the console script (reads host/port from settings)
    book-voice serve
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from book_voice import __version__
from book_voice.api.dependencies import get_voice_service
from book_voice.api.routes import not_found_handler, router, validation_error_handler
from book_voice.core.logging import configure_logging, get_logger, info
from book_voice.services.voice_service import reset_service

_LOG = get_logger("book-voice.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start and stop the service's background tasks."""
    # Honour test overrides so the sweeper belongs to the injected service
    overridden = get_voice_service in app.dependency_overrides
    provider = app.dependency_overrides.get(get_voice_service, get_voice_service)
    service = provider()

    await service.start()
    info(_LOG, "startup", version=__version__)
    try:
        yield
    finally:
        await service.aclose()
        if not overridden:
            # the closed client goes with it; the next startup builds a fresh service
            reset_service()
        info(_LOG, "shutdown")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function:
        1. Configures structured logging based on environment settings
        2. Creates a FastAPI instance with the lifespan handler
        3. Registers the relay router
        4. Installs the 404 and request validation handlers

    Returns:
        FastAPI: Configured application instance ready to serve requests.
    """
    configure_logging()

    app = FastAPI(title="book-voice", version=__version__, lifespan=lifespan)
    app.include_router(router)

    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
