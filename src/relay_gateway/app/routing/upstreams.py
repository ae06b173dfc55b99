"""Upstream table: which inbound path prefix forwards where.

The table is built once at startup from ``GatewaySettings`` and is
read-only afterwards.

| prefix          | upstream      | body transform      |
|-----------------|---------------|---------------------|
| ``/api/telegram`` | Telegram Bot API | n8n footer sanitizer |
| ``/api/openai``   | OpenAI API       | none                 |
| ``/telegram``     | Telegram Bot API | none                 |
| ``/api`` (exact)  | Telegram Bot API | none                 |
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from ..sanitize import sanitize
from ..settings import GatewaySettings

# (body_text, content_type) -> body_text
BodyTransform = Callable[[str, Optional[str]], str]


@dataclass(frozen=True, slots=True)
class UpstreamConfig:
    """One configured upstream target.

    Args:
        name: Short label used in logs and metrics.
        base_url: Scheme and host (optionally a base path), no trailing slash.
        path_prefix: Gateway path namespace routed to this upstream. It is
            stripped from the inbound path and never sent upstream.
        body_transform: Optional rewrite applied to non-empty request bodies.
    """

    name: str
    base_url: str
    path_prefix: str
    body_transform: BodyTransform | None = None


@dataclass(frozen=True, slots=True)
class UpstreamTable:
    """The upstreams served by one gateway process."""

    routed: tuple[UpstreamConfig, ...]
    """Upstreams mounted at ``prefix`` and ``prefix/...``."""

    root: UpstreamConfig
    """Upstream behind the bare ``/api`` path."""


def build_upstream_table(settings: GatewaySettings) -> UpstreamTable:
    telegram = settings.telegram_base_url.rstrip('/')
    openai = settings.openai_base_url.rstrip('/')
    return UpstreamTable(
        routed=(
            UpstreamConfig(
                name='telegram',
                base_url=telegram,
                path_prefix='/api/telegram',
                body_transform=sanitize,
            ),
            UpstreamConfig(
                name='openai',
                base_url=openai,
                path_prefix='/api/openai',
            ),
            UpstreamConfig(
                name='telegram_direct',
                base_url=telegram,
                path_prefix='/telegram',
            ),
        ),
        root=UpstreamConfig(
            name='telegram_root',
            base_url=telegram,
            path_prefix='/api',
        ),
    )


def split_segments(path: str, prefix: str) -> tuple[str, ...] | None:
    """Return the non-empty path segments after ``prefix``.

    ``None`` if ``path`` is not under ``prefix`` on a segment boundary
    (``/telegramx`` is not under ``/telegram``).
    """
    if path != prefix and not path.startswith(prefix + '/'):
        return None
    rest = path[len(prefix):]
    return tuple(segment for segment in rest.split('/') if segment)
