"""Shared fixtures for canary tests.

Provides a scripted fake platform served through ``httpx.MockTransport``,
an executor bound to it, and a deterministic clock for poll and lock tests.
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import pytest
import pytest_asyncio

from canary_engine.http import HttpExecutor

BASE_URL = "https://api.kapable.test"
API_KEY = "sk-test-api"
ADMIN_KEY = "sk-test-admin"


# ---------------------------------------------------------------------------
# Fake platform
# ---------------------------------------------------------------------------


class FakePlatform:
    """Scripted responses keyed by ``(METHOD, path?query)``.

    Each route holds a queue of responses: they are served in order and the
    last one repeats.  Unscripted routes answer 404.  Every request is kept
    in :attr:`requests` for assertions.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[tuple[int, Any, str | None]]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        status: int = 200,
        json_body: Any = None,
        text: str | None = None,
    ) -> FakePlatform:
        self.routes.setdefault((method.upper(), path), []).append((status, json_body, text))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.raw_path.decode("ascii"))
        queue = self.routes.get(key)
        if not queue:
            return httpx.Response(404, json={"error": "Not found"})

        status, json_body, text = queue.pop(0) if len(queue) > 1 else queue[0]
        if text is not None:
            return httpx.Response(status, text=text)
        if json_body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=json_body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        """Requests recorded for one route."""
        return [
            r for r in self.requests if r.method == method.upper() and r.url.raw_path.decode("ascii") == path
        ]

    def sent_json(self, request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None


@pytest.fixture()
def platform() -> FakePlatform:
    return FakePlatform()


@pytest_asyncio.fixture()
async def http(platform: FakePlatform) -> AsyncGenerator[HttpExecutor, None]:
    """Executor wired to the fake platform."""
    executor = HttpExecutor(
        BASE_URL,
        api_key=API_KEY,
        admin_key=ADMIN_KEY,
        timeout_ms=2_000,
        transport=httpx.MockTransport(platform.handler),
    )
    yield executor
    await executor.aclose()


# ---------------------------------------------------------------------------
# Deterministic time
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock in seconds whose ``sleep`` only advances time."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()
