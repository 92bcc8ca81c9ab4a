"""Request-logging middleware for the Tweety HTTP host."""

from __future__ import annotations

import logging
import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("canary_api.access")

# Header names whose values must be masked in log output.
_SENSITIVE_HEADERS: frozenset[str] = frozenset({"authorization", "x-api-key", "cookie"})
_MASK: str = "***"


def safe_headers(request: Request) -> dict[str, str]:
    """Return a copy of the request headers with sensitive values masked."""
    out: dict[str, str] = {}
    for key, value in request.headers.items():
        if key.lower() in _SENSITIVE_HEADERS:
            out[key] = _MASK
        else:
            out[key] = value
    return out


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status code, and duration.

    The payload is attached as the ``request`` extra so that the structured
    :class:`~canary_engine.logging_config.JSONFormatter` emits it as a field.
    Canary runs can take minutes; the duration is logged once the response
    has been produced.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.monotonic()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.monotonic() - start) * 1000, 2)
            status_code = response.status_code if response is not None else 500

            log_payload: dict[str, Any] = {
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "client": request.client.host if request.client else None,
                "headers": safe_headers(request),
            }
            message = "%s %s -> %d"
            args = (request.method, request.url.path, status_code)
            if status_code >= 500:
                logger.error(message, *args, extra={"request": log_payload})
            elif status_code >= 400:
                logger.warning(message, *args, extra={"request": log_payload})
            else:
                logger.info(message, *args, extra={"request": log_payload})
