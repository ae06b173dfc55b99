"""Error codes and the JSON envelope returned for rejected requests.

Every rejection the gateway produces itself has the shape::

    {"ok": false, "error": "<CODE>", "message": "<text>"}

Upstream-returned error statuses never pass through here; they are
relayed unchanged.
"""

from __future__ import annotations

from enum import Enum

from fastapi.responses import JSONResponse


class ErrorCode(str, Enum):
    """Error identifiers exposed in the ``error`` field of the envelope."""

    AUTHENTICATION_ERROR = 'AUTHENTICATION_ERROR'
    UPSTREAM_ERROR = 'UPSTREAM_ERROR'
    NOT_FOUND = 'NOT_FOUND'


AUTH_ERROR_MESSAGE = 'Missing or invalid X-Internal-Token header'

_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.AUTHENTICATION_ERROR: 401,
    ErrorCode.UPSTREAM_ERROR: 502,
    ErrorCode.NOT_FOUND: 404,
}


def status_for(code: ErrorCode) -> int:
    return _STATUS_BY_CODE[code]


def error_body(code: ErrorCode, message: str) -> dict[str, object]:
    return {'ok': False, 'error': code.value, 'message': message}


def error_response(code: ErrorCode, message: str) -> JSONResponse:
    """Build the JSON envelope response for ``code`` with its fixed status."""
    return JSONResponse(
        status_code=status_for(code),
        content=error_body(code, message),
    )


def not_found_response(path: str) -> JSONResponse:
    return error_response(ErrorCode.NOT_FOUND, f'No route matches {path}')
