import os
import sys
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

import asyncio

import pytest
from fastapi.testclient import TestClient
import fakeredis.aioredis as fakeredis

import meetup.lifespan as lifespan
import meetup.main as main
from meetup.config import clear_settings_cache


class _AwaitableRedis:
    def __init__(self, client):
        self._client = client

    def __await__(self):
        async def _coro():
            return self._client

        return _coro().__await__()


@pytest.fixture
def client(monkeypatch):
    def fake_redis_constructor(*_args, **_kwargs):
        fake = fakeredis.FakeRedis(decode_responses=True)
        return _AwaitableRedis(fake)

    monkeypatch.setenv("STORE_BACKEND", "memory")
    clear_settings_cache()
    monkeypatch.setattr(lifespan.redis, "Redis", fake_redis_constructor)

    with TestClient(main.app) as c:
        yield c
    clear_settings_cache()


class Recorder:
    """Listener that records every SyncUpdate and lets a test wait for one."""

    def __init__(self):
        self.updates = []
        self._changed = asyncio.Condition()

    async def __call__(self, update):
        async with self._changed:
            self.updates.append(update)
            self._changed.notify_all()

    def of_kind(self, kind):
        return [u for u in self.updates if u.kind == kind]

    async def wait_for(self, predicate, timeout=2.0):
        async def _wait():
            async with self._changed:
                await self._changed.wait_for(lambda: any(predicate(u) for u in self.updates))

        await asyncio.wait_for(_wait(), timeout)
        return next(u for u in self.updates if predicate(u))


@pytest.fixture
def recorder():
    return Recorder()
