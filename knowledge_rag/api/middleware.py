"""API middleware: CORS, tenant-scoped request logging, and error mapping.

Starlette middleware is a stack, last added runs first.  ``main.py`` adds
ErrorHandlingMiddleware before RequestLoggingMiddleware, so requests flow
RequestLogging -> ErrorHandling -> route handler, and the logged status is
the one the client finally receives.

RequestLoggingMiddleware binds the tenant id from the URL into structlog's
context variables, so every service log line emitted while serving a
``/tenants/{tenant_id}/...`` request carries ``tenant_id`` without the
services passing it to their loggers.
"""

from __future__ import annotations

import re
import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from knowledge_rag.api.schemas import ErrorResponse
from knowledge_rag.utils.errors import (
    EmbeddingChainError,
    ExtractionError,
    KnowledgeBaseError,
    StoreError,
)
from knowledge_rag.utils.logging import get_logger, log_scope

_logger: structlog.BoundLogger = get_logger(__name__)

_TENANT_PATH = re.compile(r"/tenants/([^/]+)")

# Backend outages are retryable; anything else escaping a route is a bug.
_STATUS_BY_ERROR: list[tuple[type[KnowledgeBaseError], int]] = [
    (ExtractionError, 422),
    (EmbeddingChainError, 503),
    (StoreError, 503),
]


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Allow cross-origin calls from chat widgets and dashboards.

    Defaults to ``["*"]``; pass explicit origins in production.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def status_for_error(exc: KnowledgeBaseError) -> int:
    """Return the HTTP status used when *exc* escapes a route handler."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one ``http_request`` line per request, bound to the tenant."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        path = request.url.path
        match = _TENANT_PATH.search(path)
        tenant_id = match.group(1) if match else None

        start = time.perf_counter()
        status_code = 500
        with log_scope(tenant_id=tenant_id):
            try:
                response = await call_next(request)
                status_code = response.status_code
                return response
            finally:
                _logger.info(
                    "http_request",
                    method=request.method,
                    path=path,
                    status=status_code,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn an escaped ``KnowledgeBaseError`` into an ``ErrorResponse`` body.

    Storage and embedding outages map to 503, unreadable uploads to 422,
    everything else to 500.  The provider name stays in the server log.
    Non-application exceptions fall through to FastAPI's default handler.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except KnowledgeBaseError as exc:
            status_code = status_for_error(exc)
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status_code,
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            return JSONResponse(status_code=status_code, content=body.model_dump())
