"""Tests for log redaction, secret masking and metric path labels."""

from __future__ import annotations

import pytest

from relay_gateway.observability import metrics_text, redact_path
from relay_gateway.observability.logging import _mask_secrets
from relay_gateway.observability.middleware import UNMATCHED_PATH_LABEL, path_label

PREFIXES = ('/api/telegram', '/api/openai', '/telegram')
EXACT = ('/health', '/metrics', '/api')


@pytest.mark.parametrize('path,expected', [
    ('/api/telegram/bot123:ABC/sendMessage', '/api/telegram/bot{token}/sendMessage'),
    ('https://api.telegram.org/bot9:x-y_z/getMe?a=1', 'https://api.telegram.org/bot{token}/getMe?a=1'),
    ('https://api.telegram.org/bot9:xyz?a=1', 'https://api.telegram.org/bot{token}?a=1'),
    ('/api/openai/v1/chat/completions', '/api/openai/v1/chat/completions'),
    ('/health', '/health'),
])
def test_redact_path(path, expected):
    assert redact_path(path) == expected


@pytest.mark.parametrize('path,expected', [
    ('/api/telegram/bot1:A/sendMessage', '/api/telegram/{path}'),
    ('/api/openai/v1/models', '/api/openai/{path}'),
    ('/api/openai', '/api/openai'),
    ('/telegram/bot1:A/getMe', '/telegram/{path}'),
    ('/api', '/api'),
    ('/health', '/health'),
    ('/telegramx/getMe', UNMATCHED_PATH_LABEL),
    ('/wp-login.php', UNMATCHED_PATH_LABEL),
])
def test_path_label(path, expected):
    assert path_label(path, PREFIXES, EXACT) == expected


def test_mask_secrets():
    event = {'event': 'x', 'authorization': 'Bearer sk', 'token': '', 'status': 200}
    assert _mask_secrets(None, 'info', event) == {
        'event': 'x',
        'authorization': '***',
        'token': '',
        'status': 200,
    }


def test_metrics_text_is_prometheus_exposition():
    body, content_type = metrics_text()
    assert content_type.startswith('text/plain')
    assert b'gateway_body_sanitized_total' in body
