"""Shared fixtures: a controllable clock and an in-memory HTTP backend."""

from __future__ import annotations

import json
from typing import Any, Callable, Tuple, Union

import httpx
import pytest

from corrector.auth import AuthStrategyRegistry, TokenCache
from corrector.engine import CorrectorEngine, HttpTransport
from corrector.mapping import MappingConfig


class FakeClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


Reply = Union[Tuple[int, Any], Callable[[httpx.Request], httpx.Response]]


class MockApi:
    """Routes requests by (method, url without query) to queued replies.

    Each route plays its replies in order and repeats the last one.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list[Reply]] = {}

    def route(self, method: str, url: str, *replies: Reply) -> None:
        self._routes[(method.upper(), url)] = list(replies)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, f"{request.url.scheme}://{request.url.host}{request.url.path}")
        replies = self._routes.get(key)
        if not replies:
            return httpx.Response(404, json={"message": f"no route for {key}"})
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if callable(reply):
            return reply(request)
        status, body = reply
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def calls(self, method: str, url: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper()
            and f"{r.url.scheme}://{r.url.host}{r.url.path}" == url
        ]

    @staticmethod
    def json_body(request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def api() -> MockApi:
    return MockApi()


@pytest.fixture
def token_cache(clock: FakeClock) -> TokenCache:
    return TokenCache(margin_seconds=60, clock=clock)


@pytest.fixture
def auth_registry(token_cache: TokenCache, api: MockApi) -> AuthStrategyRegistry:
    return AuthStrategyRegistry(token_cache=token_cache, http_client=api.client())


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def engine(api: MockApi, auth_registry: AuthStrategyRegistry, sleep: RecordingSleep) -> CorrectorEngine:
    return CorrectorEngine(
        auth_registry=auth_registry,
        transport=HttpTransport(client=api.client()),
        sleep=sleep,
    )


@pytest.fixture
def make_mapping() -> Callable[..., MappingConfig]:
    def _make(**overrides: Any) -> MappingConfig:
        data: dict[str, Any] = {
            "id": "crm-contact",
            "name": "crm",
            "targetApi": {"url": "https://crm.test/contacts", "method": "POST"},
        }
        data.update(overrides)
        return MappingConfig.model_validate(data)

    return _make
