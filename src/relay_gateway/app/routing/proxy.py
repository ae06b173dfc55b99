"""Forwarder: relay one inbound request to its upstream.

Pipeline for a single request:

1. Build the target URL from ``UpstreamConfig.base_url``, the inbound path
   segments and the untouched query string.
2. Filter headers (see ``headers.filter_forward``).
3. For methods that carry a body, read it and, if the upstream has a body
   transform and the body is non-empty, rewrite it.
4. Send it with ``httpx.AsyncClient``. No retry, no internal timeout unless
   one is configured.
5. Any upstream response, 4xx/5xx included, becomes ``Relayed``. A transport
   failure (connect, DNS, timeout, protocol, body read) becomes
   ``Rejected(UPSTREAM_ERROR)``. Nothing escapes ``forward``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Mapping

import httpx

from relay_gateway.observability import get_logger, redact_path
from relay_gateway.observability.metrics import UPSTREAM_DURATION_SECONDS

from .headers import filter_backward, filter_forward, header_value
from .upstreams import UpstreamConfig

logger = get_logger(__name__)

# Methods whose inbound body is never read or forwarded.
NO_BODY_METHODS: frozenset[str] = frozenset({'GET', 'HEAD'})


class BodyReadError(Exception):
    """Raised by a body reader when the inbound body cannot be obtained."""


async def _empty_body() -> bytes:
    return b''


# ── Request / result types ────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class InboundRequest:
    """What the forwarder needs from a client request.

    ``path_segments`` are already split, with empties removed, and exclude
    the gateway's own prefix. ``read_body`` is awaited at most once.
    """

    method: str
    path_segments: tuple[str, ...]
    query_string: str = ''
    headers: Mapping[str, str] = field(default_factory=dict)
    read_body: Callable[[], Awaitable[bytes]] = _empty_body


@dataclass(frozen=True, slots=True)
class OutboundRequest:
    url: str
    method: str
    headers: dict[str, str]
    body: bytes | None


class RejectionKind(str, Enum):
    AUTH_ERROR = 'auth_error'
    UPSTREAM_ERROR = 'upstream_error'


@dataclass(frozen=True, slots=True)
class Relayed:
    status: int
    status_text: str
    headers: tuple[tuple[str, str], ...]
    body: bytes


@dataclass(frozen=True, slots=True)
class Rejected:
    kind: RejectionKind
    message: str


ProxyResult = Relayed | Rejected


# ── Helpers ───────────────────────────────────────────────────────────


def build_target_url(
    base_url: str,
    path_segments: tuple[str, ...] | list[str],
    query_string: str = '',
) -> str:
    """Join base URL, segments and query without a stray ``/``.

    >>> build_target_url('https://api.example.com', [], 'a=1')
    'https://api.example.com?a=1'
    >>> build_target_url('https://api.example.com', ['v1', 'chat'])
    'https://api.example.com/v1/chat'
    """
    url = base_url.rstrip('/')
    path = '/'.join(segment for segment in path_segments if segment)
    if path:
        url = f'{url}/{path}'
    if query_string:
        url = f'{url}?{query_string}'
    return url


def _wire_headers(headers: Mapping[str, str]) -> list[tuple[bytes, bytes]]:
    # ASGI servers decode header bytes as latin-1; send them back the same way.
    return [
        (key.encode('latin-1'), value.encode('latin-1'))
        for key, value in headers.items()
    ]


def _failure_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def _encode_text(text: str) -> bytes:
    return text.encode('utf-8', 'surrogateescape')


def _decode_text(raw: bytes) -> str:
    # surrogateescape keeps non-UTF-8 bytes (binary file parts) intact.
    return raw.decode('utf-8', 'surrogateescape')


# ── Forwarder ─────────────────────────────────────────────────────────


class Forwarder:
    """Issues the upstream call for one request and maps the outcome.

    Args:
        timeout: Seconds for the whole exchange; ``None`` means no bound.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def prepare(
        self,
        inbound: InboundRequest,
        upstream: UpstreamConfig,
    ) -> OutboundRequest:
        """Build the outbound request. Raises ``BodyReadError``."""
        url = build_target_url(upstream.base_url, inbound.path_segments, inbound.query_string)
        headers = filter_forward(inbound.headers)

        body: bytes | None = None
        method = inbound.method.upper()
        if method not in NO_BODY_METHODS:
            raw = await inbound.read_body()
            if raw and upstream.body_transform is not None:
                content_type = header_value(inbound.headers, 'content-type')
                # CPU-bound on large bodies; keep it off the event loop.
                loop = asyncio.get_running_loop()
                text = await loop.run_in_executor(
                    None, upstream.body_transform, _decode_text(raw), content_type,
                )
                raw = _encode_text(text)
            body = raw or None

        return OutboundRequest(url=url, method=method, headers=headers, body=body)

    async def forward(
        self,
        inbound: InboundRequest,
        upstream: UpstreamConfig,
    ) -> ProxyResult:
        target_url = build_target_url(
            upstream.base_url, inbound.path_segments, inbound.query_string,
        )
        log_url = redact_path(target_url)

        try:
            outbound = await self.prepare(inbound, upstream)
        except BodyReadError as exc:
            logger.error('proxy_upstream_error', target_url=log_url, error=_failure_message(exc))
            return Rejected(RejectionKind.UPSTREAM_ERROR, _failure_message(exc))

        logger.info(
            'proxy_request',
            method=outbound.method,
            target_url=log_url,
            auth='present' if 'authorization' in outbound.headers else 'missing',
        )

        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=False,
            ) as client:
                response = await client.request(
                    method=outbound.method,
                    url=outbound.url,
                    headers=_wire_headers(outbound.headers),
                    content=outbound.body,
                )
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError, UnicodeEncodeError) as exc:
            logger.error('proxy_upstream_error', target_url=log_url, error=_failure_message(exc))
            return Rejected(RejectionKind.UPSTREAM_ERROR, _failure_message(exc))
        finally:
            UPSTREAM_DURATION_SECONDS.labels(upstream=upstream.name).observe(time.perf_counter() - start)

        logger.info('proxy_response', target_url=log_url, status=response.status_code)

        return Relayed(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=tuple(filter_backward(response.headers, keep_length=outbound.method == 'HEAD')),
            body=response.content,
        )
