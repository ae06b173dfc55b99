"""Gateway configuration settings.

GatewaySettings is the single configuration object accepted by create_app().
It is a plain dataclass (not env-coupled) so tests can inject config
without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import urlparse

DEFAULT_TELEGRAM_BASE_URL = "https://api.telegram.org"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com"

# Telegram Bot API caps uploads at 50 MB.
DEFAULT_MAX_BODY_BYTES = 50 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class GatewaySettings:
    """Configuration for the relay gateway FastAPI application.

    All fields have defaults that run the gateway in optional-auth mode
    against the public Telegram and OpenAI hosts.
    """

    # ── Auth ───────────────────────────────────────────────────────
    internal_proxy_token: str = ""
    """Expected X-Internal-Token value. Empty means optional-auth mode. Never log this."""

    auth_disabled: bool = False
    """Skip the token check entirely, even when a token is configured."""

    # ── Upstreams ──────────────────────────────────────────────────
    telegram_base_url: str = DEFAULT_TELEGRAM_BASE_URL
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL

    upstream_timeout: float | None = None
    """Seconds to wait on the upstream. None leaves the bound to the host."""

    # ── Request limits ─────────────────────────────────────────────
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES

    # ── Logging ────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        for name in ("telegram_base_url", "openai_base_url"):
            url = getattr(self, name)
            parsed = urlparse(url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append(f"{name} must include scheme and host, got {url!r}")
        if self.max_body_bytes <= 0:
            errors.append(f"max_body_bytes must be positive, got {self.max_body_bytes}")
        if self.upstream_timeout is not None and self.upstream_timeout <= 0:
            errors.append(f"upstream_timeout must be positive, got {self.upstream_timeout}")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> GatewaySettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct GatewaySettings directly.
        """
        if env is None:
            env = dict(os.environ)

        timeout_raw = env.get("UPSTREAM_TIMEOUT_SECONDS", "").strip()
        max_body_raw = env.get("MAX_BODY_BYTES", "").strip()

        return cls(
            internal_proxy_token=env.get("INTERNAL_PROXY_TOKEN", ""),
            auth_disabled=env.get("DISABLE_AUTH", "").strip().lower() == "true",
            telegram_base_url=env.get("TELEGRAM_BASE_URL", DEFAULT_TELEGRAM_BASE_URL).rstrip("/"),
            openai_base_url=env.get("OPENAI_BASE_URL", DEFAULT_OPENAI_BASE_URL).rstrip("/"),
            upstream_timeout=float(timeout_raw) if timeout_raw else None,
            max_body_bytes=int(max_body_raw) if max_body_raw else DEFAULT_MAX_BODY_BYTES,
            log_level=env.get("LOG_LEVEL", "INFO"),
            log_format=env.get("LOG_FORMAT", "json"),
        )
