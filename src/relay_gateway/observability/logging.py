"""Structured logging for the relay gateway.

structlog renders every event as one JSON line (or console output in
development) carrying the request ID of the request being served.

Two things never reach a log line in clear:

- values of secret-bearing keys (``token``, ``authorization``, ...), which
  are masked by a processor;
- Telegram bot tokens, which live in the request path (``/bot<token>/``).
  Call :func:`redact_path` on any path or URL before logging it.

Usage::

    from relay_gateway.observability import configure_logging, get_logger

    configure_logging(level="DEBUG", json_output=False)
    logger = get_logger(__name__)
    logger.info("proxy_response", target_url=redact_path(url), status=200)
"""

from __future__ import annotations

import logging
import re
import sys
from contextvars import ContextVar

import structlog

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_BOT_TOKEN_SEGMENT = re.compile(r"/bot[^/?#]+")

_SECRET_KEYS = frozenset({
    "authorization",
    "internal_proxy_token",
    "token",
    "x-internal-token",
})

_MASK = "***"

_configured = False


def redact_path(path: str) -> str:
    """Mask Telegram bot tokens embedded in a request path or URL."""
    return _BOT_TOKEN_SEGMENT.sub("/bot{token}", path)


def _add_request_id(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict.setdefault("request_id", rid)
    return event_dict


def _mask_secrets(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    for key in event_dict.keys() & _SECRET_KEYS:
        if event_dict[key]:
            event_dict[key] = _MASK
    return event_dict


def configure_logging(*, level: str = "INFO", json_output: bool = True) -> None:
    """Route structlog through stdlib logging with a single stdout handler.

    Only the first call has an effect.

    Args:
        level: Root log level name. Unknown names fall back to INFO.
        json_output: JSON lines when True, ``ConsoleRenderer`` otherwise.
    """
    global _configured
    if _configured:
        return
    _configured = True

    pre_chain: list = [
        structlog.contextvars.merge_contextvars,
        _add_request_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _mask_secrets,
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # uvicorn's access log duplicates request_completed; httpx logs each
    # upstream call at INFO with the unredacted URL.
    for name in ("uvicorn.access", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
