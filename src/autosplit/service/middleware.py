"""Request middleware for the AutoSplit service.

Every request gets a correlation id: the client's ``X-Correlation-ID`` when it
is well formed, a fresh UUID otherwise. The id is bound to the log context,
echoed on the response, and copied into ``ErrorResponse`` bodies by the ledger
error handler. One ``request.completed`` line is logged per request; binary
calls are tagged with the entry point they invoked.
"""

from __future__ import annotations

import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging import bind_context, clear_context, get_logger

CORRELATION_ID_HEADER = "X-Correlation-ID"

_CORRELATION_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")
_CALL_PATH_PREFIX = "/call/"

logger = get_logger(__name__)


def resolve_correlation_id(header_value: str | None) -> str:
    if header_value and _CORRELATION_ID_RE.match(header_value):
        return header_value
    return uuid.uuid4().hex


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id and log the outcome of each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = resolve_correlation_id(request.headers.get(CORRELATION_ID_HEADER))
        request.state.correlation_id = correlation_id

        fields = {"correlation_id": correlation_id, "method": request.method, "path": request.url.path}
        if request.url.path.startswith(_CALL_PATH_PREFIX):
            fields["entry_point"] = request.url.path[len(_CALL_PATH_PREFIX):]
        bind_context(**fields)

        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                "request.completed",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            return response
        finally:
            clear_context()


def get_correlation_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)


__all__ = [
    "CorrelationIdMiddleware",
    "CORRELATION_ID_HEADER",
    "get_correlation_id",
    "resolve_correlation_id",
]
