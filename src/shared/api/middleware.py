"""
Shared API Middleware
======================

Request tracing, access logging and the exception handlers that turn
`ApplicationException` subclasses into JSON error bodies.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from src.core import ApplicationException
from src.shared.infrastructure.logging import get_logger, set_correlation_id

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


def _since(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with a correlation ID.

    A caller-supplied X-Correlation-ID is reused, otherwise a UUID4 is
    minted. The ID lands on request.state, in every log record emitted
    while the request runs, and on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """One log line when a request arrives and one when it finishes or fails."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        route = {"method": request.method, "path": request.url.path}

        logger.info(
            "Request started",
            extra={**route, "client": request.client.host if request.client else None}
        )
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={**route, "error": str(e), "response_time_ms": _since(started)}
            )
            raise

        elapsed_ms = _since(started)
        response.headers["X-Response-Time"] = f"{elapsed_ms}ms"
        logger.info(
            "Request completed",
            extra={**route, "status_code": response.status_code, "response_time_ms": elapsed_ms}
        )
        return response


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """
    Answer with the exception's own status code.

    4xx are logged at WARNING, 5xx at ERROR.
    """
    correlation_id = _correlation_id(request)
    error_type = type(exc).__name__

    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request rejected",
        extra={
            "path": request.url.path,
            "error_type": error_type,
            "error_message": exc.message,
            "error_details": exc.details,
            "status_code": exc.status_code
        }
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_type": error_type, "correlation_id": correlation_id}
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort 500; the exception text is only returned in development."""
    correlation_id = _correlation_id(request)
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "method": request.method, "error_type": type(exc).__name__}
    )

    config = getattr(request.app.state, "settings", None)
    development = getattr(config, "environment", None) == "development"
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "debug_info": str(exc) if development else None
        }
    )
