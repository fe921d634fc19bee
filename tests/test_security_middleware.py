from __future__ import annotations

import json

import pytest
from fastapi.responses import JSONResponse
from starlette.requests import Request

from filebox import main


def _make_request(method: str, path: str, *, host: str = 'files.local:8080', origin: str | None = None) -> Request:
    headers: list[tuple[bytes, bytes]] = [(b'host', host.encode())]
    if origin:
        headers.append((b'origin', origin.encode()))

    scope = {
        'type': 'http',
        'http_version': '1.1',
        'method': method,
        'scheme': 'http',
        'path': path,
        'raw_path': path.encode(),
        'query_string': b'',
        'headers': headers,
        'client': ('127.0.0.1', 12345),
        'server': ('files.local', 8080),
    }

    async def _receive():
        return {'type': 'http.request', 'body': b'', 'more_body': False}

    return Request(scope, _receive)


class _Recorder:
    def __init__(self):
        self.calls = 0

    async def __call__(self, _request: Request):
        self.calls += 1
        return JSONResponse({'ok': True})


@pytest.mark.asyncio
async def test_security_headers_added_on_success_response():
    downstream = _Recorder()

    response = await main.security_middleware(_make_request('GET', '/'), downstream)

    assert response.status_code == 200
    assert downstream.calls == 1
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
    assert response.headers['X-Frame-Options'] == 'DENY'
    assert response.headers['X-XSS-Protection'] == '1; mode=block'


@pytest.mark.asyncio
async def test_options_answers_preflight_without_reaching_route():
    downstream = _Recorder()

    response = await main.security_middleware(_make_request('OPTIONS', '/upload', origin='https://evil.example'), downstream)

    assert response.status_code == 204
    assert response.headers['Allow'] == 'GET, POST, DELETE'
    assert response.body == b''
    assert response.headers['X-Frame-Options'] == 'DENY'
    assert downstream.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize('path', ['/upload', '/delete/report.txt', '/download/report.txt', '/'])
async def test_cross_origin_request_rejected(path):
    downstream = _Recorder()
    method = 'GET' if path in ('/', '/download/report.txt') else 'POST'

    response = await main.security_middleware(_make_request(method, path, origin='https://evil.example'), downstream)

    assert response.status_code == 403
    assert json.loads(response.body)['detail'] == 'Forbidden: Cross-origin request denied'
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
    assert downstream.calls == 0


@pytest.mark.asyncio
async def test_same_origin_request_allowed():
    downstream = _Recorder()

    response = await main.security_middleware(
        _make_request('POST', '/upload', origin='http://files.local:8080'), downstream
    )

    assert response.status_code == 200
    assert downstream.calls == 1


@pytest.mark.asyncio
async def test_origin_check_is_substring_containment():
    downstream = _Recorder()

    response = await main.security_middleware(
        _make_request('POST', '/upload', host='files.local', origin='http://files.local.attacker.example'), downstream
    )

    assert response.status_code == 200
    assert downstream.calls == 1


@pytest.mark.asyncio
async def test_request_without_origin_allowed():
    downstream = _Recorder()

    response = await main.security_middleware(_make_request('POST', '/delete/x'), downstream)

    assert response.status_code == 200
