"""
Shared API Middleware
======================

Request correlation, access logging and the mapping of application
exceptions onto HTTP responses.

Error bodies always have the same shape:
    {"error": <error_code>, "detail": <message>, "correlation_id": <id>}
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from helpdesk.core import (
    ApplicationException,
    ResourceNotFoundException,
    ValidationException,
    QueueFullException,
    ConfigurationException,
)
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

# First match wins, so subclasses come before their bases.
_STATUS_BY_EXCEPTION = (
    (ResourceNotFoundException, 404),
    (QueueFullException, 503),
    (ValidationException, 400),
    (ConfigurationException, 503),
)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


def _elapsed_ms(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with a correlation ID, taken from the
    X-Correlation-ID header when the caller sends one.

    The request correlation ID links HTTP logs and human actions (reply,
    assign) in the audit trail. Each triage run gets its own correlation ID
    from the route that enqueues it.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """One structured access-log line per request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        request_info = {
            "correlation_id": _correlation_id(request),
            "method": request.method,
            "path": request.url.path,
        }

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={**request_info, "error": str(e), "response_time_ms": _elapsed_ms(start_time)}
            )
            raise

        log = logger.debug if request.url.path == "/health" else logger.info
        log(
            "Request completed",
            extra={
                **request_info,
                "status_code": response.status_code,
                "response_time_ms": _elapsed_ms(start_time)
            }
        )
        return response


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """Map the application exception hierarchy onto HTTP status codes."""
    correlation_id = _correlation_id(request)
    status_code = next(
        (code for exc_type, code in _STATUS_BY_EXCEPTION if isinstance(exc, exc_type)),
        500
    )

    log = logger.warning if status_code < 500 else logger.error
    log(
        "Application error",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "error_code": exc.error_code,
            "error_type": type(exc).__name__,
            "error_message": exc.message,
            "status_code": status_code
        }
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.error_code,
            "detail": exc.message,
            "correlation_id": correlation_id
        }
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last-resort handler for exceptions outside the application hierarchy.

    The exception text is only exposed in development.
    """
    correlation_id = _correlation_id(request)

    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        },
        exc_info=exc
    )

    is_dev = getattr(request.app.state, "environment", None) == "development"
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "detail": str(exc) if is_dev else "Internal server error",
            "correlation_id": correlation_id
        }
    )
