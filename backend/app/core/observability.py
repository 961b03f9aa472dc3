"""
Observability middleware and utilities.

Provides:
- Correlation ID tracking across requests
- Request/response logging
- Health endpoint

When CORRELATION_IDS_ENABLED is active every request gets a unique
correlation ID, which is also forwarded to the upstream backend and
returned in the response headers.
"""

import time
import uuid
import logging
from typing import Callable, Optional
from datetime import datetime, timezone
from contextvars import ContextVar

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.feature_flags import flags, is_enabled


correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

logger = logging.getLogger("hotel_ops.requests")

CORRELATION_HEADER = "X-Correlation-ID"


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID from context."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set correlation ID in context."""
    correlation_id_var.set(correlation_id)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Extracts the correlation ID from the X-Correlation-ID header or
    generates a new one, and echoes it in the response headers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        set_correlation_id(correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs request details, timing, and response status."""

    EXCLUDED_PATHS = {"/health", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        start_time = time.time()
        correlation_id = get_correlation_id() or "no-correlation-id"

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"[{correlation_id}] {request.method} {request.url.path} "
                f"failed after {duration_ms:.2f}ms: {str(e)}",
                extra={
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": duration_ms,
                },
                exc_info=True
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"[{correlation_id}] {request.method} {request.url.path} "
            f"completed {response.status_code} in {duration_ms:.2f}ms",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            }
        )
        return response


def setup_observability(app):
    """
    Setup observability middleware and the health endpoint on the app.

    Call this during app initialization.
    """
    # First added = innermost, so the correlation ID is set before logging runs
    if is_enabled("REQUEST_LOGGING_ENABLED"):
        app.add_middleware(RequestLoggingMiddleware)

    if is_enabled("CORRELATION_IDS_ENABLED"):
        app.add_middleware(CorrelationIdMiddleware)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "entity_source": settings.entity_source,
            "features": flags.get_all(),
        }
