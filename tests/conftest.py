"""Pytest configuration for relay gateway tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC = _PROJECT_ROOT / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import httpx
import pytest


@pytest.fixture
def upstream_calls() -> list[httpx.Request]:
    """Requests seen by the fake upstream, in arrival order."""
    return []


@pytest.fixture
def upstream_transport(upstream_calls):
    """MockTransport answering 200 ``{"ok": true}`` and recording each call."""

    def handler(request: httpx.Request) -> httpx.Response:
        request.read()
        upstream_calls.append(request)
        return httpx.Response(
            200,
            json={'ok': True},
            headers={'content-type': 'application/json'},
        )

    return httpx.MockTransport(handler)
