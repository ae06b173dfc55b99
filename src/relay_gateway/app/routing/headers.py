"""Header filtering across the proxy boundary.

Outbound (client -> upstream):
  1. A fixed allow-list of well-known headers is copied when present and
     non-empty.
  2. Every other header is copied unless it is platform-internal
     (``x-internal-*``, ``x-forwarded-*``, ``x-vercel-*``), ``host``, or a
     hop-by-hop or framing header (``connection``, ``content-length``,
     ``transfer-encoding``, ``te``, ``trailer``, ``keep-alive``, ``upgrade``,
     ``proxy-connection``).
  3. Names are de-duplicated case-insensitively; the allow-list copy wins.

Inbound (upstream -> client):
  ``content-type`` first, then every other upstream header except the
  encoding headers. The gateway buffers and decodes the upstream body, so
  ``content-encoding``, ``transfer-encoding`` and ``content-length`` no
  longer describe what is sent back. A HEAD response has no body to
  measure, so its upstream ``content-length`` is kept.
"""

from __future__ import annotations

from typing import Iterable, Mapping

# Copied first and always, provided the value is non-empty.
FORWARD_ALLOW_HEADERS: tuple[str, ...] = (
    'authorization',
    'content-type',
    'accept',
    'accept-encoding',
    'accept-language',
    'user-agent',
    'x-requested-with',
    'openai-organization',
    'openai-project',
)

# Prefixes of headers that belong to the gateway or its hosting edge.
STRIP_FORWARD_PREFIXES: tuple[str, ...] = (
    'x-internal-',
    'x-forwarded-',
    'x-vercel-',
)

# Hop-by-hop and framing headers. The body goes upstream buffered, with
# a length httpx computes.
STRIP_FORWARD_EXACT: frozenset[str] = frozenset({
    'host',
    'connection',
    'content-length',
    'transfer-encoding',
    'te',
    'trailer',
    'keep-alive',
    'upgrade',
    'proxy-connection',
})

STRIP_BACKWARD_HEADERS: frozenset[str] = frozenset({
    'content-encoding',
    'transfer-encoding',
    'content-length',
})


def _items(headers: Mapping[str, str]) -> Iterable[tuple[str, str]]:
    # Starlette Headers / httpx.Headers expose every occurrence via multi_items().
    multi_items = getattr(headers, 'multi_items', None)
    if multi_items is not None:
        return multi_items()
    return headers.items()


def header_value(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive lookup of the first occurrence of ``name``."""
    name = name.lower()
    for key, value in _items(headers):
        if key.lower() == name:
            return value
    return None


def is_forwardable(name: str) -> bool:
    """True if a header name may cross from the client to the upstream."""
    lower = name.lower()
    if lower in STRIP_FORWARD_EXACT:
        return False
    return not lower.startswith(STRIP_FORWARD_PREFIXES)


def filter_forward(inbound_headers: Mapping[str, str]) -> dict[str, str]:
    """Derive the outbound header set from the client's headers.

    Keys in the result are lower-cased. When a header occurs more than
    once only the first occurrence is kept.
    """
    forwarded: dict[str, str] = {}

    for name in FORWARD_ALLOW_HEADERS:
        value = header_value(inbound_headers, name)
        if value:
            forwarded[name] = value

    for key, value in _items(inbound_headers):
        lower_key = key.lower()
        if lower_key in forwarded:
            continue
        if not is_forwardable(lower_key):
            continue
        forwarded[lower_key] = value

    return forwarded


def filter_backward(
    upstream_headers: Mapping[str, str],
    *,
    keep_length: bool = False,
) -> list[tuple[str, str]]:
    """Derive the client-facing header list from an upstream response.

    Returned as ordered pairs so repeated headers (``set-cookie``) survive.
    ``content-type`` is always first when the upstream sent one.
    ``keep_length`` passes ``content-length`` through (HEAD responses).
    """
    result: list[tuple[str, str]] = []

    content_type = header_value(upstream_headers, 'content-type')
    if content_type is not None:
        result.append(('content-type', content_type))

    for key, value in _items(upstream_headers):
        lower_key = key.lower()
        if lower_key == 'content-type':
            continue
        if lower_key in STRIP_BACKWARD_HEADERS:
            if not (keep_length and lower_key == 'content-length'):
                continue
        result.append((lower_key, value))

    return result
