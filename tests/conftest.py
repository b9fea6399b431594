# tests/conftest.py
import asyncio
import httpx
import pytest
from fastapi.testclient import TestClient

from kartproxy.core.config import Settings
from kartproxy.main import app as fastapi_app


class FakeClock:
    """Monotonic clock the tests move by hand."""
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class Upstream:
    """
    httpx.MockTransport wrapper that records every request.
    `responses` is either one callable or a list consumed in order.
    """
    def __init__(self, responses):
        self.responses = responses
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if callable(self.responses):
            return self.responses(request)
        return self.responses.pop(0)

    @property
    def calls(self) -> int:
        return len(self.requests)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture()
def settings():
    return Settings(
        _env_file=None,
        LM_CLIENT_KEY="client-id",
        LM_CLIENT_SECRET="client-secret",
        LLM_PROVIDER="openai",
        OPENAI_API_KEY="sk-test",
        POI_CACHE_TTL=300,
        POI_CACHE_MAX_ENTRIES=200,
    )


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def app():
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    return TestClient(app)
