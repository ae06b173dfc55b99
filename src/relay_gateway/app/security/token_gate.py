"""Shared-token gate for proxied requests.

Decision order:
  1. ``AuthConfig.disabled`` set: every request passes.
  2. No expected token configured: every request passes (optional-auth mode).
  3. Otherwise the candidate token is read from the ``X-Internal-Token``
     header, falling back to the ``token`` query parameter, and must equal
     the expected token exactly (case-sensitive, untrimmed).

The gate is a pure predicate. It never reads ``os.environ``; the
process-wide configuration is injected once as an ``AuthConfig``.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Mapping

# ── Constants ─────────────────────────────────────────────────────────

TOKEN_HEADER = 'X-Internal-Token'
TOKEN_QUERY_PARAM = 'token'


# ── Configuration ─────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """Process-wide token gate configuration.

    Attributes:
        expected_token: Shared secret callers must present. Empty string
            means no token is provisioned.
        disabled: Explicit kill switch for the check.
    """

    expected_token: str = ''
    disabled: bool = False

    def __repr__(self) -> str:
        state = 'set' if self.expected_token else 'unset'
        return f'AuthConfig(expected_token=<{state}>, disabled={self.disabled})'


# ── Gate ──────────────────────────────────────────────────────────────


def _candidate_token(
    headers: Mapping[str, str],
    query_params: Mapping[str, str],
) -> str | None:
    # Starlette Headers is case-insensitive; plain dicts are scanned.
    header_value = headers.get(TOKEN_HEADER)
    if header_value is None:
        wanted = TOKEN_HEADER.lower()
        header_value = next(
            (v for k, v in headers.items() if k.lower() == wanted), None,
        )
    if header_value:
        return header_value
    # First occurrence wins; QueryParams.get would return the last one.
    getlist = getattr(query_params, 'getlist', None)
    if getlist is not None:
        values = getlist(TOKEN_QUERY_PARAM)
        return values[0] if values and values[0] else None
    return query_params.get(TOKEN_QUERY_PARAM) or None


def authorize(
    headers: Mapping[str, str],
    query_params: Mapping[str, str],
    config: AuthConfig,
) -> bool:
    """Return True when the request may proceed to an upstream."""
    if config.disabled:
        return True
    if not config.expected_token:
        return True

    provided = _candidate_token(headers, query_params)
    if provided is None:
        return False
    return hmac.compare_digest(
        provided.encode('utf-8', 'surrogateescape'),
        config.expected_token.encode('utf-8', 'surrogateescape'),
    )


class TokenGate:
    """Bound form of :func:`authorize` built once at app startup."""

    def __init__(self, config: AuthConfig) -> None:
        self._config = config

    @property
    def config(self) -> AuthConfig:
        return self._config

    def authorize(
        self,
        headers: Mapping[str, str],
        query_params: Mapping[str, str],
    ) -> bool:
        return authorize(headers, query_params, self._config)
