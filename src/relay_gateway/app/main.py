"""Relay gateway FastAPI application factory.

The create_app() factory is the single entry point for building the
gateway ASGI application. It builds the upstream table, the token gate
and the forwarder from settings, wires observability middleware, and
registers one proxy router per upstream.

Usage:
    # Production
    app = create_app_from_env()

    # Testing (upstreams replaced by an httpx transport)
    app = create_app(GatewaySettings(), transport=httpx.MockTransport(handler))
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from relay_gateway import __version__
from relay_gateway.observability import configure_logging, get_logger, metrics_text
from relay_gateway.observability.middleware import (
    MetricsMiddleware,
    RequestIdMiddleware,
    RequestLoggingMiddleware,
)

from .errors import not_found_response
from .routing import (
    Forwarder,
    GatewayDeps,
    build_upstream_table,
    create_api_root_router,
    create_upstream_router,
)
from .security import AuthConfig, TokenGate
from .settings import GatewaySettings

logger = get_logger(__name__)


def create_app(
    settings: GatewaySettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create a configured gateway FastAPI application.

    Args:
        settings: Application settings. Defaults to optional-auth mode
            against the public upstream hosts.
        transport: httpx transport for upstream calls. None uses the
            network.

    Returns:
        Configured FastAPI application ready for uvicorn.run().

    Raises:
        ValueError: If settings validation fails.
    """
    if settings is None:
        settings = GatewaySettings()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "Gateway settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    upstreams = build_upstream_table(settings)
    auth_config = AuthConfig(
        expected_token=settings.internal_proxy_token,
        disabled=settings.auth_disabled,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "gateway_startup",
            upstreams=[u.path_prefix for u in upstreams.routed],
            auth_mode=_auth_mode(auth_config),
        )
        yield
        logger.info("gateway_shutdown")

    app = FastAPI(
        title="Relay Gateway",
        description="Token-gated forwarding proxy for Telegram and OpenAI APIs",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.upstreams = upstreams
    app.state.gateway = GatewayDeps(
        gate=TokenGate(auth_config),
        forwarder=Forwarder(timeout=settings.upstream_timeout, transport=transport),
        max_body_bytes=settings.max_body_bytes,
    )

    # ── Middleware stack (applied in reverse order) ──────────────
    # Order of execution: RequestId -> Metrics -> RequestLogging -> route
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        MetricsMiddleware,
        prefixes=[u.path_prefix for u in upstreams.routed],
        exact=["/health", "/metrics", upstreams.root.path_prefix],
    )
    app.add_middleware(RequestIdMiddleware)

    # ── Errors ──────────────────────────────────────────────────

    @app.exception_handler(StarletteHTTPException)
    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return not_found_response(request.url.path)
        return await http_exception_handler(request, exc)

    # ── Routes ──────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics():
        body, content_type = metrics_text()
        return Response(content=body, media_type=content_type)

    endpoints = [f"{u.path_prefix}/*" for u in upstreams.routed if u.path_prefix.startswith("/api/")]
    app.include_router(create_api_root_router(upstreams.root, endpoints))
    for upstream in upstreams.routed:
        app.include_router(create_upstream_router(upstream))

    return app


def create_app_from_env() -> FastAPI:
    """Build settings from the process environment, configure logging, build the app."""
    settings = GatewaySettings.from_env()
    configure_logging(
        level=settings.log_level,
        json_output=settings.log_format == "json",
    )
    return create_app(settings)


def _auth_mode(config: AuthConfig) -> str:
    if config.disabled:
        return "disabled"
    if not config.expected_token:
        return "optional"
    return "required"


# For uvicorn, use --factory flag:
#   uvicorn relay_gateway.app.main:create_app_from_env --factory
# This avoids executing create_app() at import time.
