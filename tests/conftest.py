from __future__ import annotations

import asyncio
import inspect
import json
from typing import Any, Callable

import httpx
import pytest

from adapters.http_client import SafeFetcher, build_async_client
from core.config import AppSettings
from core.domain.errors import NoSessionError
from core.services.request_tracker import RequestTracker

BASE_URL = "http://backend.test"
FUNCTIONS_URL = f"{BASE_URL}/functions/v1"


class StaticTokenProvider:
    """TokenProvider de prueba: siempre el mismo token, o siempre un error."""

    def __init__(self, token: str = "test-token", error: Exception | None = None) -> None:
        self.token = token
        self.error = error
        self.calls = 0

    @property
    def is_authenticated(self) -> bool:
        return self.error is None

    async def get_valid_token(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.token


class RecordingHandler:
    """Handler para `httpx.MockTransport` que guarda cada request."""

    def __init__(self, responder: Callable[[httpx.Request], Any]) -> None:
        self.responder = responder
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        result = self.responder(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    @property
    def count(self) -> int:
        return len(self.requests)

    def json_body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


@pytest.fixture
def settings(tmp_path) -> AppSettings:
    return AppSettings(
        _env_file=None,
        supabase_url=BASE_URL,
        supabase_anon_key="anon-key",
        retry_backoff_seconds=0,
        session_file=tmp_path / "session.json",
    )


@pytest.fixture
def tracker() -> RequestTracker:
    return RequestTracker()


@pytest.fixture
def tokens() -> StaticTokenProvider:
    return StaticTokenProvider()


@pytest.fixture
def no_session() -> StaticTokenProvider:
    return StaticTokenProvider(error=NoSessionError("No active session. Please log in."))


@pytest.fixture
async def make_fetcher(settings, tracker, tokens):
    clients: list[httpx.AsyncClient] = []

    def _factory(responder, *, token_provider=None) -> tuple[SafeFetcher, RecordingHandler]:
        handler = RecordingHandler(responder)
        client = build_async_client(settings, transport=httpx.MockTransport(handler))
        clients.append(client)
        fetcher = SafeFetcher(
            token_provider or tokens,
            tracker,
            client=client,
            settings=settings,
            backoff_seconds=0,
        )
        return fetcher, handler

    yield _factory

    for client in clients:
        await client.aclose()


async def wait_until(predicate: Callable[[], bool], *, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")
