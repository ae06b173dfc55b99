"""Logging, metrics and request correlation for the relay gateway."""

from .logging import configure_logging, get_logger, redact_path, request_id_ctx
from .metrics import metrics_text

__all__ = [
    "configure_logging",
    "get_logger",
    "metrics_text",
    "redact_path",
    "request_id_ctx",
]
