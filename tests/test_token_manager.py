from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from adapters.session_store import MemoryTokenStore, TokenStore
from adapters.token_manager import SupabaseTokenManager
from conftest import BASE_URL, RecordingHandler, json_response
from core.domain.errors import AuthError, NoSessionError
from core.domain.models import TokenData
from core.interfaces.auth import TokenProvider

NOW = 1_700_000_000.0


def _token(expires_in: float, refresh: str | None = "refresh-1") -> TokenData:
    return TokenData(
        access_token="access-old",
        refresh_token=refresh,
        expires_at=NOW + expires_in,
        created_at=NOW,
        user={"id": "u1", "email": "ops@example.com"},
    )


def _manager(settings, responder, token: TokenData | None = None):
    handler = RecordingHandler(responder)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    manager = SupabaseTokenManager(
        settings,
        client=client,
        store=MemoryTokenStore(token),
        clock=lambda: NOW,
    )
    return manager, handler, client


def _refreshed(request: httpx.Request) -> httpx.Response:
    return json_response({"access_token": "access-new", "refresh_token": "refresh-2", "expires_in": 3600})


async def test_manager_satisfies_the_token_provider_protocol(settings):
    manager, _, client = _manager(settings, _refreshed)
    assert isinstance(manager, TokenProvider)
    await client.aclose()


async def test_no_session_fails_instead_of_returning_empty(settings):
    manager, handler, client = _manager(settings, _refreshed)

    with pytest.raises(NoSessionError):
        await manager.get_valid_token()
    assert handler.count == 0
    await client.aclose()


async def test_fresh_token_is_returned_without_refresh(settings):
    manager, handler, client = _manager(settings, _refreshed, _token(expires_in=3600))

    assert await manager.get_valid_token() == "access-old"
    assert handler.count == 0
    await client.aclose()


async def test_concurrent_callers_share_a_single_refresh(settings):
    release = asyncio.Event()

    async def slow_refresh(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return _refreshed(request)

    manager, handler, client = _manager(settings, slow_refresh, _token(expires_in=60))

    waiters = [asyncio.create_task(manager.get_valid_token()) for _ in range(5)]
    await asyncio.sleep(0.01)
    release.set()
    results = await asyncio.gather(*waiters)

    assert results == ["access-new"] * 5
    assert handler.count == 1
    request = handler.requests[0]
    assert request.url.params["grant_type"] == "refresh_token"
    assert json.loads(request.content) == {"refresh_token": "refresh-1"}
    await client.aclose()


async def test_cancelled_waiter_does_not_cancel_shared_refresh(settings):
    release = asyncio.Event()

    async def slow_refresh(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return _refreshed(request)

    manager, handler, client = _manager(settings, slow_refresh, _token(expires_in=60))

    impatient = asyncio.create_task(manager.get_valid_token())
    patient = asyncio.create_task(manager.get_valid_token())
    await asyncio.sleep(0.01)
    impatient.cancel()
    release.set()

    assert await patient == "access-new"
    assert impatient.cancelled()
    assert handler.count == 1
    await client.aclose()


async def test_failed_refresh_falls_back_to_unexpired_token(settings):
    manager, _, client = _manager(settings, lambda r: json_response({"error": "invalid_grant"}, 400), _token(expires_in=60))

    assert await manager.get_valid_token() == "access-old"
    assert manager.is_authenticated
    await client.aclose()


async def test_failed_refresh_of_expired_token_clears_session(settings):
    manager, _, client = _manager(settings, lambda r: json_response({"error": "invalid_grant"}, 400), _token(expires_in=-5))

    with pytest.raises(NoSessionError):
        await manager.get_valid_token()
    assert not manager.is_authenticated
    await client.aclose()


async def test_expired_token_without_refresh_token_raises(settings):
    manager, handler, client = _manager(settings, _refreshed, _token(expires_in=-5, refresh=None))

    with pytest.raises(NoSessionError):
        await manager.get_valid_token()
    assert handler.count == 0
    await client.aclose()


async def test_sign_in_stores_session(settings):
    def grant(request: httpx.Request) -> httpx.Response:
        assert request.url.params["grant_type"] == "password"
        return json_response(
            {
                "access_token": "access-login",
                "refresh_token": "r",
                "expires_at": NOW + 3600,
                "user": {"id": "u1", "email": "ops@example.com"},
            }
        )

    manager, _, client = _manager(settings, grant)

    token = await manager.sign_in("ops@example.com", "secret")

    assert token.access_token == "access-login"
    assert manager.user == {"id": "u1", "email": "ops@example.com"}
    assert await manager.get_valid_token() == "access-login"
    assert manager.token_info()["minutes_until_expiry"] == 60
    await client.aclose()


async def test_sign_in_rejection_is_an_auth_error(settings):
    manager, _, client = _manager(settings, lambda r: json_response({"error_description": "Invalid login credentials"}, 400))

    with pytest.raises(AuthError, match="Invalid login credentials"):
        await manager.sign_in("ops@example.com", "wrong")
    assert not manager.is_authenticated
    await client.aclose()


async def test_sign_out_clears_even_if_remote_logout_fails(settings):
    def fail(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    manager, _, client = _manager(settings, fail, _token(expires_in=3600))

    await manager.sign_out()

    assert not manager.is_authenticated
    assert manager.token_info() == {"has_token": False}
    await client.aclose()


def test_token_store_round_trips_and_discards_corrupt_files(tmp_path):
    store = TokenStore(tmp_path / "nested" / "session.json")
    store.save(_token(expires_in=3600))

    assert store.load() == _token(expires_in=3600)

    store.path.write_text("{not json", encoding="utf-8")
    assert store.load() is None
    assert not store.path.exists()
