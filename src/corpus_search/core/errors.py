"""
Global Error Handling

Application-wide exception handlers for the search service.

Design Goals
------------
- Never leak internal exception details to clients
- Always return deterministic, machine-readable error responses
- Log full stack traces internally for debugging
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..corpus.walker import CorpusWalkError
from ..embeddings.index import CorpusIndexError
from ..engine import IndexNotInitializedError

logger = logging.getLogger("corpus.errors")


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    payload: Dict[str, Any] = {"error": error, "detail": detail}
    return JSONResponse(status_code=status_code, content=payload)


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def not_initialized_handler(
    request: Request,
    exc: IndexNotInitializedError,
) -> JSONResponse:
    """
    The index has not been built or loaded yet; the caller can retry after
    a rebuild.
    """
    logger.warning("Request before index initialization: %s %s", request.method, request.url.path)
    return _error(409, "index_not_initialized", str(exc))


async def index_error_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Index store or corpus walk failure (persistence, consistency, unreadable
    root). Logged in full, reported generically.
    """
    logger.exception(
        "Index failure during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return _error(500, "index_error", "Index operation failed")


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Logs the full traceback and returns a generic 500 with no internal
    details.
    """
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return _error(500, "internal_server_error", "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(IndexNotInitializedError, not_initialized_handler)
    app.add_exception_handler(CorpusIndexError, index_error_handler)
    app.add_exception_handler(CorpusWalkError, index_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
