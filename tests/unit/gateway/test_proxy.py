"""Tests for the forwarder.

Validates:
  - Target URL construction (base + segments + verbatim query).
  - Header and body handling on the way out.
  - Every upstream status is relayed, transport failures are not.
"""

from __future__ import annotations

import gzip
import json

import httpx
import pytest

from relay_gateway.app.routing import (
    BodyReadError,
    Forwarder,
    InboundRequest,
    Rejected,
    RejectionKind,
    Relayed,
    UpstreamConfig,
    build_target_url,
)
from relay_gateway.app.sanitize import SIGNATURE_PHRASE, sanitize

TELEGRAM = UpstreamConfig(
    name='telegram',
    base_url='https://api.telegram.org',
    path_prefix='/api/telegram',
    body_transform=sanitize,
)
OPENAI = UpstreamConfig(name='openai', base_url='https://api.openai.com', path_prefix='/api/openai')


def static_body(data: bytes):
    async def read() -> bytes:
        return data

    return read


def _forwarder(handler) -> Forwarder:
    return Forwarder(transport=httpx.MockTransport(handler))


def _recording(seen: list[httpx.Request], response: httpx.Response | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        request.read()
        seen.append(request)
        return response if response is not None else httpx.Response(200, json={'ok': True})

    return handler


# =====================================================================
# URL construction
# =====================================================================


class TestBuildTargetUrl:

    @pytest.mark.parametrize('base,segments,query,expected', [
        ('https://api.example.com', [], 'a=1', 'https://api.example.com?a=1'),
        ('https://api.example.com', ['v1', 'chat'], '', 'https://api.example.com/v1/chat'),
        ('https://api.example.com/', ['v1'], '', 'https://api.example.com/v1'),
        ('https://api.example.com', ['bot1:A', 'sendMessage'], 'x=%20y&x=2',
         'https://api.example.com/bot1:A/sendMessage?x=%20y&x=2'),
        ('https://api.example.com', ['', 'v1', ''], '', 'https://api.example.com/v1'),
        ('https://api.example.com', [], '', 'https://api.example.com'),
        ('https://api.example.com', ['files', 'a%2Fb'], '', 'https://api.example.com/files/a%2Fb'),
    ])
    def test_join(self, base, segments, query, expected):
        assert build_target_url(base, segments, query) == expected


# =====================================================================
# Outbound request
# =====================================================================


class TestOutbound:

    @pytest.mark.asyncio
    async def test_path_query_and_headers(self):
        seen: list[httpx.Request] = []
        inbound = InboundRequest(
            method='post',
            path_segments=('v1', 'chat', 'completions'),
            query_string='b=2&a=1',
            headers={
                'Authorization': 'Bearer sk-test',
                'Content-Type': 'application/json',
                'X-Internal-Token': 'gateway-secret',
                'X-Forwarded-For': '10.0.0.1',
                'X-Custom': 'kept',
            },
            read_body=static_body(b'{"model": "m"}'),
        )

        result = await _forwarder(_recording(seen)).forward(inbound, OPENAI)

        assert isinstance(result, Relayed)
        request = seen[0]
        assert request.method == 'POST'
        assert request.url.host == 'api.openai.com'
        assert request.url.path == '/v1/chat/completions'
        assert request.url.query == b'b=2&a=1'
        assert request.headers['authorization'] == 'Bearer sk-test'
        assert request.headers['x-custom'] == 'kept'
        assert 'x-internal-token' not in request.headers
        assert 'x-forwarded-for' not in request.headers
        assert request.content == b'{"model": "m"}'

    @pytest.mark.asyncio
    async def test_body_transform_applied(self):
        seen: list[httpx.Request] = []
        body = json.dumps({'chat_id': 5, 'text': f'hello\n\n{SIGNATURE_PHRASE}'}).encode()
        inbound = InboundRequest(
            method='POST',
            path_segments=('bot123:ABC', 'sendMessage'),
            headers={'content-type': 'application/json'},
            read_body=static_body(body),
        )

        await _forwarder(_recording(seen)).forward(inbound, TELEGRAM)

        assert json.loads(seen[0].content) == {'chat_id': 5, 'text': 'hello'}
        assert seen[0].url.path == '/bot123:ABC/sendMessage'

    @pytest.mark.asyncio
    async def test_no_transform_forwards_body_verbatim(self):
        seen: list[httpx.Request] = []
        body = f'{{"text": "hi {SIGNATURE_PHRASE}"}}'.encode()
        inbound = InboundRequest(
            method='POST',
            path_segments=('v1', 'x'),
            headers={'content-type': 'application/json'},
            read_body=static_body(body),
        )

        await _forwarder(_recording(seen)).forward(inbound, OPENAI)

        assert seen[0].content == body

    @pytest.mark.asyncio
    async def test_binary_body_survives_transform(self):
        seen: list[httpx.Request] = []
        body = b'\x00\xff\xfe raw bytes \x80'
        inbound = InboundRequest(
            method='PUT',
            path_segments=('upload',),
            headers={'content-type': 'application/octet-stream'},
            read_body=static_body(body),
        )

        await _forwarder(_recording(seen)).forward(inbound, TELEGRAM)

        assert seen[0].content == body

    @pytest.mark.asyncio
    @pytest.mark.parametrize('method', ['GET', 'HEAD'])
    async def test_bodyless_methods_do_not_read_body(self, method):
        seen: list[httpx.Request] = []
        calls = []

        async def read_body() -> bytes:
            calls.append(1)
            return b'should not be sent'

        inbound = InboundRequest(method=method, path_segments=('getMe',), read_body=read_body)
        await _forwarder(_recording(seen)).forward(inbound, TELEGRAM)

        assert calls == []
        assert seen[0].content == b''

    @pytest.mark.asyncio
    async def test_empty_body_not_transformed(self):
        transformed = []

        def transform(text, content_type):
            transformed.append(text)
            return text

        upstream = UpstreamConfig('t', 'https://t.example', '/t', body_transform=transform)
        seen: list[httpx.Request] = []
        inbound = InboundRequest(method='POST', path_segments=())

        await _forwarder(_recording(seen)).forward(inbound, upstream)

        assert transformed == []
        assert seen[0].content == b''

    @pytest.mark.asyncio
    async def test_chunked_upload_sent_with_length_only(self):
        seen: list[httpx.Request] = []
        inbound = InboundRequest(
            method='POST',
            path_segments=('v1', 'x'),
            headers={'content-type': 'text/plain', 'transfer-encoding': 'chunked'},
            read_body=static_body(b'hello'),
        )

        await _forwarder(_recording(seen)).forward(inbound, OPENAI)

        sent = seen[0].headers
        assert 'transfer-encoding' not in sent
        assert sent['content-length'] == '5'
        assert seen[0].content == b'hello'


# =====================================================================
# Result mapping
# =====================================================================


class TestResults:

    @pytest.mark.asyncio
    @pytest.mark.parametrize('status', [200, 201, 204, 400, 401, 404, 429, 500, 503])
    async def test_every_status_relayed(self, status):
        content = b'' if status == 204 else b'{"ok": false}'
        response = httpx.Response(status, content=content, headers={'content-type': 'application/json'})
        inbound = InboundRequest(method='GET', path_segments=('x',))

        result = await _forwarder(_recording([], response)).forward(inbound, OPENAI)

        assert isinstance(result, Relayed)
        assert result.status == status
        assert result.body == content

    @pytest.mark.asyncio
    async def test_response_headers_filtered_and_body_decoded(self):
        payload = b'{"ok": true}'
        response = httpx.Response(
            200,
            content=gzip.compress(payload),
            headers=[
                ('content-encoding', 'gzip'),
                ('x-request-cost', '3'),
                ('content-type', 'application/json'),
                ('set-cookie', 'a=1'),
                ('set-cookie', 'b=2'),
            ],
        )
        inbound = InboundRequest(method='GET', path_segments=())

        result = await _forwarder(_recording([], response)).forward(inbound, OPENAI)

        assert result.body == payload
        assert result.status_text == 'OK'
        names = [name for name, _ in result.headers]
        assert names[0] == 'content-type'
        assert 'content-encoding' not in names
        assert 'content-length' not in names
        assert ('set-cookie', 'a=1') in result.headers
        assert ('set-cookie', 'b=2') in result.headers

    @pytest.mark.asyncio
    @pytest.mark.parametrize('exc', [
        httpx.ConnectError('connection refused'),
        httpx.ReadTimeout('timed out'),
        httpx.RemoteProtocolError('peer closed connection'),
    ])
    async def test_transport_failure_rejected(self, exc):
        def handler(request: httpx.Request) -> httpx.Response:
            raise exc

        inbound = InboundRequest(method='GET', path_segments=('v1',))
        result = await _forwarder(handler).forward(inbound, OPENAI)

        assert result == Rejected(RejectionKind.UPSTREAM_ERROR, str(exc))

    @pytest.mark.asyncio
    async def test_body_read_failure_rejected_without_upstream_call(self):
        seen: list[httpx.Request] = []

        async def read_body() -> bytes:
            raise BodyReadError('client disconnected')

        inbound = InboundRequest(method='POST', path_segments=(), read_body=read_body)
        result = await _forwarder(_recording(seen)).forward(inbound, OPENAI)

        assert result == Rejected(RejectionKind.UPSTREAM_ERROR, 'client disconnected')
        assert seen == []


    @pytest.mark.asyncio
    @pytest.mark.parametrize('method,expected', [('HEAD', ['42']), ('GET', [])])
    async def test_content_length_relayed_only_for_head(self, method, expected):
        response = httpx.Response(
            200, headers={'content-type': 'application/json', 'content-length': '42'},
        )
        inbound = InboundRequest(method=method, path_segments=('v1', 'files'))

        result = await _forwarder(_recording([], response)).forward(inbound, OPENAI)

        assert [value for name, value in result.headers if name == 'content-length'] == expected
