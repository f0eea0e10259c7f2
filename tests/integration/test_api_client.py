"""
Integration tests for the backend REST client.
Runs ApiClient against a fake backend served by aiohttp.
"""

import asyncio
from typing import Any, Dict, List

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from malbouche.api.api_client import (
    ApiClient,
    ApiConnectionError,
    ApiResponseError,
    AuthTokenMissingError,
    TokenProvider,
)
from malbouche.devices.movement_types import Movement, MovementValidationError


LOCALHOST = '127.0.0.1'
TOKEN = 'secret-token'


class FakeBackend:
    """Records requests; each route answers with a canned (status, body)."""

    def __init__(self, movements: List[Dict[str, Any]]):
        self.movements = movements
        self.requests: List[Dict[str, Any]] = []
        self.responses: Dict[str, Any] = {}
        self.app = web.Application()
        self.app.router.add_route('*', '/api/{tail:.*}', self.handle)

    async def handle(self, request: web.Request) -> web.Response:
        body = await request.json() if request.can_read_body else None
        self.requests.append({
            'method': request.method,
            'path': request.raw_path,
            'auth': request.headers.get('Authorization'),
            'json': body,
        })
        key = f"{request.method} {request.path}"
        if key in self.responses:
            status, payload = self.responses[key]
            if isinstance(payload, str):
                return web.Response(status=status, text=payload)
            return web.json_response(payload, status=status)
        if key == 'GET /api/movements':
            return web.json_response({'success': True, 'data': self.movements})
        return web.json_response({'success': True, 'data': body or {}})


@pytest.fixture
def backend(movement_config_custom, event_config_thursday):
    fake = FakeBackend([movement_config_custom, {'id': 'mov-2', 'nombre': 'crazy'}])
    fake.responses['GET /api/events'] = (200, {'success': True, 'data': [event_config_thursday]})
    return fake


def _client(server: TestServer, token=TOKEN) -> ApiClient:
    return ApiClient(
        base_url=str(server.make_url('/api')),
        token_provider=TokenProvider(token=token),
        timeout_seconds=2.0
    )


class TestRequests:
    """Test authentication and error mapping."""

    def test_events_sent_with_bearer_token(self, backend):
        async def run_test():
            async with TestServer(backend.app, host=LOCALHOST) as server:
                return await _client(server).get_events()

        events = asyncio.run(run_test())

        assert events[0]['id'] == 'evt-1'
        assert backend.requests[0]['auth'] == f"Bearer {TOKEN}"

    def test_missing_token_fails_before_request(self, backend):
        async def run_test():
            async with TestServer(backend.app, host=LOCALHOST) as server:
                await _client(server, token=None).get_events()

        with pytest.raises(AuthTokenMissingError):
            asyncio.run(run_test())
        assert backend.requests == []

    def test_token_file_is_reread(self, backend, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_text("first\n")
        provider = TokenProvider(token_file=str(token_file))

        async def run_test():
            async with TestServer(backend.app, host=LOCALHOST) as server:
                client = ApiClient(str(server.make_url('/api')), provider, timeout_seconds=2.0)
                await client.get_events()
                token_file.write_text("second")
                await client.get_events()

        asyncio.run(run_test())

        assert [r['auth'] for r in backend.requests] == ['Bearer first', 'Bearer second']

    def test_non_2xx_carries_error_and_details(self, backend, event_config_thursday):
        backend.responses['POST /api/events'] = (409, {
            'success': False,
            'error': 'Conflicto de horario',
            'details': {'conflictingEvent': 'Morning spin'},
        })

        async def run_test():
            async with TestServer(backend.app, host=LOCALHOST) as server:
                await _client(server).create_event(event_config_thursday)

        with pytest.raises(ApiResponseError) as exc_info:
            asyncio.run(run_test())

        assert exc_info.value.status == 409
        assert exc_info.value.error == 'Conflicto de horario'
        assert exc_info.value.details == {'conflictingEvent': 'Morning spin'}

    def test_success_false_in_2xx_body(self, backend):
        backend.responses['GET /api/events'] = (200, {'success': False, 'error': 'db offline'})

        async def run_test():
            async with TestServer(backend.app, host=LOCALHOST) as server:
                await _client(server).get_events()

        with pytest.raises(ApiResponseError, match='db offline'):
            asyncio.run(run_test())

    def test_malformed_body(self, backend):
        backend.responses['GET /api/events'] = (502, "<html>Bad gateway</html>")

        async def run_test():
            async with TestServer(backend.app, host=LOCALHOST) as server:
                await _client(server).get_events()

        with pytest.raises(ApiResponseError) as exc_info:
            asyncio.run(run_test())
        assert exc_info.value.status == 502

    def test_unreachable_backend(self, backend):
        async def run_test():
            async with TestServer(backend.app, host=LOCALHOST) as server:
                base_url = str(server.make_url('/api'))
            client = ApiClient(base_url, TokenProvider(token=TOKEN), timeout_seconds=2.0)
            await client.get_events()

        with pytest.raises(ApiConnectionError):
            asyncio.run(run_test())


class TestMovements:
    """Test movement lookup and the current-movement update."""

    def test_get_movement_filters_list(self, backend):
        async def run_test():
            async with TestServer(backend.app, host=LOCALHOST) as server:
                client = _client(server)
                return await client.get_movement('mov-1'), await client.get_movement('mov-404')

        found, missing = asyncio.run(run_test())

        assert found.name == 'Vaivén'
        assert missing is None
        assert all(r['path'] == '/api/movements' for r in backend.requests)

    def test_set_current_movement_posts_quoted_name(self, backend, movement_custom):
        async def run_test():
            async with TestServer(backend.app, host=LOCALHOST) as server:
                await _client(server).set_current_movement(movement_custom)

        asyncio.run(run_test())

        request = backend.requests[0]
        assert request['method'] == 'POST'
        assert request['path'] == '/api/movimiento-actual/Vaiv%C3%A9n'
        assert request['json'] == {'velocidad': 40}

    def test_create_movement_validates_first(self, backend, movement_config_custom):
        movement_config_custom['movimiento']['horas']['velocidad'] = 150
        movement = Movement.from_dict(movement_config_custom)

        async def run_test():
            async with TestServer(backend.app, host=LOCALHOST) as server:
                await _client(server).create_movement(movement)

        with pytest.raises(MovementValidationError):
            asyncio.run(run_test())
        assert backend.requests == []

    def test_base_url_trailing_slash(self):
        client = ApiClient(base_url='http://backend.local/api/')
        assert client.base_url == 'http://backend.local/api'

        client.base_url = 'http://other.local/api//'
        assert client.base_url == 'http://other.local/api'

    def test_malformed_movement_is_skipped(self, movement_config_custom):
        backend = FakeBackend([
            {'id': 'bad', 'nombre': 'broken', 'movimiento': 'horario'},
            {'id': 'bad-hand', 'nombre': 'broken', 'movimiento': {'horas': 'rapido'}},
            movement_config_custom,
        ])

        async def run_test():
            async with TestServer(backend.app, host=LOCALHOST) as server:
                client = _client(server)
                return await client.get_movements(), await client.get_movement('mov-1')

        movements, found = asyncio.run(run_test())

        assert [m.id for m in movements] == ['mov-1']
        assert found.name == 'Vaivén'
