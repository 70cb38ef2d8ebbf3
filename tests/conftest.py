import asyncio
import json

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from mcinstance import assets
from mcinstance.environment import PlatformContext
from mcinstance.models import GameDirectories


@pytest.fixture
def linux():
    return PlatformContext(os_name='linux', arch='x64')


@pytest.fixture
def windows():
    return PlatformContext(os_name='windows', arch='x64')


@pytest.fixture
def dirs(tmp_path):
    return GameDirectories(tmp_path / '.minecraft')


@pytest.fixture
def no_delays(monkeypatch):
    """Removes the asset engine's retry and batch delays."""
    monkeypatch.setattr(assets, 'RETRY_DELAY', 0)
    monkeypatch.setattr(assets, 'BATCH_DELAY', 0)


class RecordingApp:
    """A local HTTP server whose routes count the requests they receive."""

    def __init__(self):
        self.app = web.Application()
        self.hits = {}

    def route(self, path, handler):
        async def counted(request):
            self.hits[path] = self.hits.get(path, 0) + 1
            return await handler(request)
        self.app.router.add_get(path, counted)

    def body(self, path, content, status=200):
        if isinstance(content, (dict, list)):
            content = json.dumps(content).encode()
        elif isinstance(content, str):
            content = content.encode()

        async def handler(request):
            return web.Response(body=content, status=status)
        self.route(path, handler)

    @property
    def total_hits(self):
        return sum(self.hits.values())


@pytest.fixture
def http_app():
    return RecordingApp()


@pytest.fixture
def serve():
    """Runs ``scenario(base_url, session)`` against a local server for ``app``."""

    def run(app, scenario):
        async def main():
            async with TestServer(app.app) as server:
                base_url = str(server.make_url('')).rstrip('/')
                async with aiohttp.ClientSession() as session:
                    return await scenario(base_url, session)
        return asyncio.run(main())

    return run
