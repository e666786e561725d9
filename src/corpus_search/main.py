"""
Search Service Entry Point

This module defines the FastAPI application factory, registers all routers
and exception handlers, and ties the application to one explicitly owned
``CorpusSearchEngine``.

Design Goals
------------
- One engine per application, stored on ``app.state``
- Index loaded (or rebuilt) once at startup
- Test-friendly via create_app(engine=...)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool

from .api import health_routes, index_routes, search_routes
from .core.errors import register_exception_handlers
from .engine import CorpusSearchEngine

logger = logging.getLogger("corpus.app")


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app(engine: Optional[CorpusSearchEngine] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Parameters
    ----------
    engine : Optional[CorpusSearchEngine]
        Engine to serve. Defaults to one built from the global settings.
        An engine that is not yet initialized is initialized at startup.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    engine = engine or CorpusSearchEngine()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting corpus-search")
        if not engine.initialized:
            await run_in_threadpool(engine.initialize)
        yield
        logger.info("Shutting down corpus-search")

    app = FastAPI(
        title="corpus-search",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.engine = engine

    register_exception_handlers(app)

    app.include_router(health_routes.router)
    app.include_router(search_routes.router)
    app.include_router(index_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn/Gunicorn)
# ---------------------------------------------------------------------

app = create_app()
