"""Route dispatch: one generic proxy router per configured upstream.

Each upstream is mounted at its prefix for all proxied methods. The
handler runs the token gate, turns the Starlette request into an
``InboundRequest``, hands it to the ``Forwarder`` and maps the
``ProxyResult`` back to an HTTP response.

Handlers read their collaborators from ``request.app.state.gateway``
(a ``GatewayDeps``), set up by ``create_app()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from starlette.requests import ClientDisconnect

from relay_gateway.observability import get_logger, redact_path
from relay_gateway.observability.metrics import PROXY_RESULTS_TOTAL

from ..errors import AUTH_ERROR_MESSAGE, ErrorCode, error_response
from ..security import TokenGate
from .proxy import (
    BodyReadError,
    Forwarder,
    InboundRequest,
    ProxyResult,
    Rejected,
    RejectionKind,
    Relayed,
)
from .upstreams import UpstreamConfig, split_segments

logger = get_logger(__name__)

PROXY_METHODS: list[str] = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'HEAD', 'OPTIONS']

_SINGLE_VALUED_HEADERS = frozenset({'content-type', 'content-length'})

_ERROR_CODE_BY_KIND: dict[RejectionKind, ErrorCode] = {
    RejectionKind.AUTH_ERROR: ErrorCode.AUTHENTICATION_ERROR,
    RejectionKind.UPSTREAM_ERROR: ErrorCode.UPSTREAM_ERROR,
}


@dataclass(frozen=True)
class GatewayDeps:
    """Collaborators shared by every proxied request. Read-only after startup."""

    gate: TokenGate
    forwarder: Forwarder
    max_body_bytes: int


# ── Request / response mapping ────────────────────────────────────────


def body_reader(request: Request, max_bytes: int) -> Callable[[], Awaitable[bytes]]:
    """Read the request body, failing with ``BodyReadError`` past ``max_bytes``."""

    async def read() -> bytes:
        chunks: list[bytes] = []
        size = 0
        try:
            async for chunk in request.stream():
                size += len(chunk)
                if size > max_bytes:
                    raise BodyReadError(f'Request body exceeds {max_bytes} bytes')
                chunks.append(chunk)
        except ClientDisconnect as exc:
            raise BodyReadError('Client disconnected while sending the request body') from exc
        return b''.join(chunks)

    return read


def raw_path(request: Request) -> str:
    """The request path as sent, percent-escapes intact."""
    raw = request.scope.get('raw_path')
    if raw:
        return raw.decode('latin-1').split('?', 1)[0]
    return request.url.path


def to_inbound(
    request: Request,
    path_segments: tuple[str, ...],
    max_body_bytes: int,
) -> InboundRequest:
    return InboundRequest(
        method=request.method,
        path_segments=path_segments,
        query_string=request.url.query,
        headers=request.headers,
        read_body=body_reader(request, max_body_bytes),
    )


def to_response(result: ProxyResult) -> Response:
    """Map a ``ProxyResult`` to the response sent to the caller."""
    if isinstance(result, Rejected):
        return error_response(_ERROR_CODE_BY_KIND[result.kind], result.message)

    response = Response(content=result.body, status_code=result.status)
    for key, value in result.headers:
        if key in _SINGLE_VALUED_HEADERS:
            # Replaces the value Starlette derived from the (possibly empty) body.
            response.headers[key] = value
        else:
            response.headers.append(key, value)
    return response


def _outcome(result: ProxyResult) -> str:
    if isinstance(result, Relayed):
        return 'relayed'
    return result.kind.value


# ── Dispatch ──────────────────────────────────────────────────────────


async def dispatch(
    request: Request,
    upstream: UpstreamConfig,
    path_segments: tuple[str, ...],
) -> Response:
    """Authorize, forward and map one request for ``upstream``."""
    deps: GatewayDeps = request.app.state.gateway

    result: ProxyResult
    if not deps.gate.authorize(request.headers, request.query_params):
        logger.warning(
            'proxy_auth_rejected',
            method=request.method,
            path=redact_path(request.url.path),
            upstream=upstream.name,
        )
        result = Rejected(RejectionKind.AUTH_ERROR, AUTH_ERROR_MESSAGE)
    else:
        inbound = to_inbound(request, path_segments, deps.max_body_bytes)
        result = await deps.forwarder.forward(inbound, upstream)

    PROXY_RESULTS_TOTAL.labels(upstream=upstream.name, outcome=_outcome(result)).inc()
    return to_response(result)


def create_upstream_router(upstream: UpstreamConfig) -> APIRouter:
    """Mount ``upstream`` at its prefix and everything below it."""
    router = APIRouter(tags=[f'proxy:{upstream.name}'])
    prefix = upstream.path_prefix

    async def proxy_to_upstream(request: Request) -> Response:
        segments = split_segments(raw_path(request), prefix)
        if segments is None:
            # Reached through a decoded path that differs from the raw one.
            segments = split_segments(request.url.path, prefix) or ()
        return await dispatch(request, upstream, segments)

    router.add_api_route(
        prefix,
        proxy_to_upstream,
        methods=PROXY_METHODS,
        name=f'proxy_{upstream.name}_root',
        include_in_schema=False,
    )
    router.add_api_route(
        prefix + '/{path:path}',
        proxy_to_upstream,
        methods=PROXY_METHODS,
        name=f'proxy_{upstream.name}',
        include_in_schema=False,
    )
    return router


def create_api_root_router(
    upstream: UpstreamConfig,
    endpoints: list[str],
) -> APIRouter:
    """``/api`` itself: GET describes the gateway, other methods forward."""
    router = APIRouter(tags=['api-root'])

    @router.api_route(upstream.path_prefix, methods=PROXY_METHODS, include_in_schema=False)
    async def api_root(request: Request) -> Response:
        if request.method == 'GET':
            return JSONResponse(
                status_code=200,
                content={
                    'ok': True,
                    'message': 'Telegram Proxy API',
                    'endpoints': endpoints,
                },
            )
        return await dispatch(request, upstream, ())

    return router
