import asyncio
import inspect
import json
from dataclasses import dataclass, field
from urllib.parse import parse_qsl

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from mediahub.models.config import AppConfig
from mediahub.storage.cache import ResponseCache
from mediahub.storage.credentials import CredentialStore
from mediahub.storage.registry import InstanceRegistry


@dataclass
class RecordedCall:
    method: str
    path: str
    query: dict
    headers: dict
    body: bytes = b""

    def json(self):
        return json.loads(self.body)

    def form(self) -> dict:
        return dict(parse_qsl(self.body.decode()))


@dataclass
class FakeBackend:
    """An in-process HTTP server that records every call it receives."""

    calls: list[RecordedCall] = field(default_factory=list)
    routes: dict = field(default_factory=dict)
    release: asyncio.Event = field(default_factory=asyncio.Event)
    server: TestServer | None = None

    def __post_init__(self):
        self.app = web.Application()
        self.app.router.add_route("*", "/{tail:.*}", self._dispatch)

    @property
    def url(self) -> str:
        return str(self.server.make_url("")).rstrip("/")

    def add(self, method, path, handler=None, *, json=None, text=None, status=200):
        if handler is None:

            async def handler(_request):
                if json is not None:
                    return web.json_response(json, status=status)
                return web.Response(text=text or "", status=status)

        self.routes[(method.upper(), path)] = handler

    def add_hanging(self, method, path):
        async def handler(_request):
            await self.release.wait()
            return web.json_response({})

        self.add(method, path, handler)

    def calls_to(self, path, method=None) -> list[RecordedCall]:
        return [
            c
            for c in self.calls
            if c.path == path and (method is None or c.method == method.upper())
        ]

    async def _dispatch(self, request: web.Request) -> web.StreamResponse:
        body = await request.read()
        self.calls.append(
            RecordedCall(
                request.method,
                request.path,
                dict(request.query),
                dict(request.headers),
                body,
            )
        )
        handler = self.routes.get((request.method, request.path))
        if handler is None:
            return web.json_response({"message": "Not Found"}, status=404)
        response = handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest_asyncio.fixture
async def backend():
    fake = FakeBackend()
    server = TestServer(fake.app)
    await server.start_server()
    fake.server = server
    yield fake
    fake.release.set()
    await server.close()


@pytest_asyncio.fixture
async def http_session():
    session = aiohttp.ClientSession(cookie_jar=aiohttp.DummyCookieJar())
    yield session
    await session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResponseCache(default_ttl=60, sweep_interval=60, clock=clock)


@pytest.fixture
def credentials(tmp_path):
    return CredentialStore(tmp_path, secret_key="test-secret")


@pytest.fixture
def registry(tmp_path, credentials):
    return InstanceRegistry(tmp_path, credentials)


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        config_path=str(tmp_path),
        request_timeout=5,
        connection_test_timeout=1,
    )
