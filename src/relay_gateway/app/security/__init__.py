"""Caller authentication for the relay gateway."""

from .token_gate import (
    TOKEN_HEADER,
    TOKEN_QUERY_PARAM,
    AuthConfig,
    TokenGate,
    authorize,
)

__all__ = [
    'TOKEN_HEADER',
    'TOKEN_QUERY_PARAM',
    'AuthConfig',
    'TokenGate',
    'authorize',
]
