"""HTTP middleware for request correlation, metrics and access logging.

``RequestIdMiddleware`` accepts a well-formed ``X-Request-ID`` or mints a
UUID, exposes it on ``request.state.request_id`` and the logging context,
and echoes it on the response.

``MetricsMiddleware`` and ``RequestLoggingMiddleware`` label requests by
route pattern, never by raw path: packet ids are collapsed to
``{packet_id}``. Tokens never appear in paths since the public endpoint
takes them in the body. Probe paths (``/health``, ``/metrics``) are counted
but not access-logged.
"""

from __future__ import annotations

import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .logging import get_logger, request_id_ctx
from .metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_FLIGHT,
    HTTP_REQUESTS_TOTAL,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PROBE_PATHS = frozenset({"/health", "/metrics"})

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9-]{8,128}$")
_PACKET_ID_SEGMENT = re.compile(r"^(/api/v1/packets/)[^/]+")


def normalize_path(path: str) -> str:
    """``/api/v1/packets/<id>`` -> ``/api/v1/packets/{packet_id}``."""
    return _PACKET_ID_SEGMENT.sub(r"\1{packet_id}", path)


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        supplied = request.headers.get(REQUEST_ID_HEADER, "")
        rid = supplied if _REQUEST_ID_RE.fullmatch(supplied) else uuid.uuid4().hex

        request.state.request_id = rid
        ctx_token = request_id_ctx.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(ctx_token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count requests by method/route/status and observe latency."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        route = normalize_path(request.url.path)
        status = "500"
        started = time.perf_counter()
        HTTP_REQUESTS_IN_FLIGHT.inc()
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            HTTP_REQUESTS_IN_FLIGHT.dec()
            HTTP_REQUEST_DURATION_SECONDS.labels(
                method=request.method, path=route,
            ).observe(time.perf_counter() - started)
            HTTP_REQUESTS_TOTAL.labels(
                method=request.method, path=route, status=status,
            ).inc()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One ``request_completed`` line per non-probe request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        if request.url.path not in PROBE_PATHS:
            logger.info(
                "request_completed",
                method=request.method,
                path=normalize_path(request.url.path),
                status=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        return response
