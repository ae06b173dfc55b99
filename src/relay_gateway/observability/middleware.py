"""HTTP middleware for the gateway application.

- ``RequestIdMiddleware`` accepts a well-formed ``X-Request-ID`` or mints
  one, exposes it through ``request_id_ctx`` and echoes it back.
- ``MetricsMiddleware`` records request count, latency and in-flight
  gauge. Path labels are bounded: anything below an upstream prefix
  collapses to ``<prefix>/{path}`` and unrouted paths share one label.
- ``RequestLoggingMiddleware`` emits one ``request_completed`` event.

Add them with ``app.add_middleware()`` in reverse execution order.
"""

from __future__ import annotations

import re
import time
import uuid
from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from .logging import get_logger, redact_path, request_id_ctx
from .metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_FLIGHT,
    HTTP_REQUESTS_TOTAL,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

_VALID_REQUEST_ID = re.compile(r"^[a-zA-Z0-9\-]{8,128}$")

UNMATCHED_PATH_LABEL = "{unmatched}"


def path_label(path: str, prefixes: Iterable[str], exact: Iterable[str] = ()) -> str:
    """Metric label for ``path``.

    ``prefixes`` are proxy mount points (longest match wins); ``exact``
    are fixed routes labelled as themselves.
    """
    if path in exact:
        return path
    for prefix in sorted(prefixes, key=len, reverse=True):
        if path == prefix:
            return prefix
        if path.startswith(prefix + "/"):
            return prefix + "/{path}"
    return UNMATCHED_PATH_LABEL


class RequestIdMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "")
        rid = incoming if _VALID_REQUEST_ID.match(incoming) else str(uuid.uuid4())

        token = request_id_ctx.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Prometheus HTTP metrics with bounded path labels.

    Args:
        app: Wrapped ASGI app.
        prefixes: Proxy mount points.
        exact: Non-proxy routes (``/health``, ``/metrics``, ``/api``).
    """

    def __init__(
        self,
        app: ASGIApp,
        prefixes: Iterable[str] = (),
        exact: Iterable[str] = (),
    ) -> None:
        super().__init__(app)
        self._prefixes = tuple(prefixes)
        self._exact = frozenset(exact)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        path = path_label(request.url.path, self._prefixes, self._exact)
        method = request.method
        status = "500"

        HTTP_REQUESTS_IN_FLIGHT.inc()
        start = time.perf_counter()
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            HTTP_REQUESTS_IN_FLIGHT.dec()
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=path).observe(
                time.perf_counter() - start,
            )
            HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status=status).inc()


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "request_completed",
            method=request.method,
            path=redact_path(request.url.path),
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response
