"""Single-tenant HTTP forwarding gateway for Telegram and OpenAI upstreams."""

__version__ = "0.1.0"
