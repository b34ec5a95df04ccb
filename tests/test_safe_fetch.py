from __future__ import annotations

import asyncio

import httpx
import pytest

from adapters.http_client import make_request_id
from conftest import FUNCTIONS_URL, StaticTokenProvider, json_response, wait_until
from core.domain.errors import (
    AuthError,
    NotFoundError,
    PermissionDeniedError,
    RequestCancelledError,
    RequestError,
    ResponseFormatError,
    ServerError,
)

URL = f"{FUNCTIONS_URL}/manage-organizations"


async def _hang(request: httpx.Request) -> httpx.Response:
    await asyncio.sleep(30)
    return json_response({})


async def test_token_failure_short_circuits_without_network(make_fetcher, no_session):
    fetcher, handler = make_fetcher(lambda r: json_response([]), token_provider=no_session)

    with pytest.raises(AuthError):
        await fetcher.fetch(URL, retry_count=2)

    assert handler.count == 0
    assert no_session.calls == 1


async def test_unexpected_token_error_becomes_auth_error(make_fetcher):
    broken = StaticTokenProvider(error=RuntimeError("storage unavailable"))
    fetcher, handler = make_fetcher(lambda r: json_response([]), token_provider=broken)

    with pytest.raises(AuthError, match="storage unavailable"):
        await fetcher.fetch(URL)
    assert handler.count == 0


async def test_network_errors_are_retried_up_to_the_bound(make_fetcher, tracker):
    def fail(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    fetcher, handler = make_fetcher(fail)

    with pytest.raises(RequestError, match="Network error"):
        await fetcher.fetch(URL, retry_count=2)

    assert handler.count == 3
    assert tracker.active_count == 0


async def test_server_errors_are_retried_then_surfaced(make_fetcher):
    fetcher, handler = make_fetcher(lambda r: json_response({"message": "boom"}, 502))

    with pytest.raises(ServerError) as exc_info:
        await fetcher.fetch(URL, retry_count=1)

    assert handler.count == 2
    assert exc_info.value.status_code == 502


@pytest.mark.parametrize(
    ("status", "error_type"),
    [(401, AuthError), (403, PermissionDeniedError)],
)
async def test_auth_and_permission_failures_are_not_retried(make_fetcher, status, error_type):
    fetcher, handler = make_fetcher(lambda r: json_response({"message": "nope"}, status))

    with pytest.raises(error_type):
        await fetcher.fetch(URL, retry_count=5)

    assert handler.count == 1


async def test_not_found_carries_server_message(make_fetcher):
    fetcher, _ = make_fetcher(lambda r: json_response({"message": "Function not found"}, 404))

    with pytest.raises(NotFoundError, match="Function not found"):
        await fetcher.fetch(URL, retry_count=0)


async def test_other_statuses_pass_server_message_through(make_fetcher):
    fetcher, handler = make_fetcher(lambda r: json_response({"error": "Invalid sortBy"}, 400))

    with pytest.raises(RequestError, match="Invalid sortBy"):
        await fetcher.fetch(URL, retry_count=1)
    assert handler.count == 2


async def test_recovers_when_a_retry_succeeds(make_fetcher):
    attempts = {"n": 0}

    def flaky(request: httpx.Request) -> httpx.Response:
        attempts["n"] += 1
        if attempts["n"] == 1:
            raise httpx.ReadTimeout("slow", request=request)
        return json_response({"data": []})

    fetcher, handler = make_fetcher(flaky)

    assert await fetcher.fetch(URL, retry_count=2) == {"data": []}
    assert handler.count == 2


async def test_sends_bearer_token_and_json_content_type(make_fetcher):
    fetcher, handler = make_fetcher(lambda r: json_response({"success": True}))

    await fetcher.fetch(URL, method="post", json={"name": "LAPO"}, headers={"X-Trace": "1"})

    request = handler.requests[0]
    assert request.method == "POST"
    assert request.headers["Authorization"] == "Bearer test-token"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["X-Trace"] == "1"
    assert handler.json_body() == {"name": "LAPO"}


async def test_multipart_upload_keeps_multipart_content_type(make_fetcher):
    fetcher, handler = make_fetcher(lambda r: json_response({"success": True}))

    await fetcher.fetch(
        URL,
        method="POST",
        files={"csv_file": ("ids.csv", b"stove_id\n1\n", "text/csv")},
        data={"organization_id": "org-1"},
    )

    assert handler.requests[0].headers["Content-Type"].startswith("multipart/form-data")


async def test_timeout_cancels_without_retrying(make_fetcher, tracker):
    fetcher, handler = make_fetcher(_hang)

    with pytest.raises(RequestCancelledError) as exc_info:
        await fetcher.fetch(URL, timeout=0.05, retry_count=3)

    assert exc_info.value.reason == "timeout"
    assert handler.count == 1
    assert tracker.active_count == 0


async def test_cancel_all_rejects_in_flight_request(make_fetcher, tracker):
    fetcher, _ = make_fetcher(_hang)
    task = asyncio.create_task(fetcher.fetch(URL, component_name="X"))
    await wait_until(lambda: tracker.active_count == 1)

    assert tracker.cancel_all("Other") == 0
    assert tracker.cancel_all("X") == 1

    with pytest.raises(RequestCancelledError) as exc_info:
        await task
    assert exc_info.value.reason == "component_closed"
    assert tracker.active_count == 0


async def test_component_fetcher_aborts_only_its_requests(make_fetcher, tracker):
    fetcher, _ = make_fetcher(_hang)
    page = fetcher.for_component("OrganizationsPage")
    other = fetcher.for_component("SalesPage")

    mine = asyncio.create_task(page.fetch(URL))
    theirs = asyncio.create_task(other.fetch(f"{URL}?x=1"))
    await wait_until(lambda: tracker.active_count == 2)

    assert page.abort_all() == 1
    with pytest.raises(RequestCancelledError):
        await mine
    assert not theirs.done()

    other.abort_all()
    with pytest.raises(RequestCancelledError):
        await theirs


async def test_unregisters_after_success(make_fetcher, tracker):
    fetcher, _ = make_fetcher(lambda r: json_response([]))

    await fetcher.fetch(URL)

    assert tracker.active_count == 0


@pytest.mark.parametrize(
    ("response_type", "expected"),
    [("text", "a,b\n1,2\n"), ("bytes", b"a,b\n1,2\n")],
)
async def test_raw_response_types(make_fetcher, response_type, expected):
    fetcher, _ = make_fetcher(lambda r: httpx.Response(200, content=b"a,b\n1,2\n"))

    assert await fetcher.fetch(URL, response_type=response_type) == expected


async def test_empty_body_parses_to_none(make_fetcher):
    fetcher, _ = make_fetcher(lambda r: httpx.Response(204))

    assert await fetcher.fetch(URL, method="DELETE") is None


async def test_invalid_json_is_a_format_error(make_fetcher):
    fetcher, _ = make_fetcher(lambda r: httpx.Response(200, content=b"<html>"))

    with pytest.raises(ResponseFormatError):
        await fetcher.fetch(URL, retry_count=0)


def test_request_ids_are_deterministic():
    first = make_request_id("post", URL, {"page": 1})

    assert first == make_request_id("POST", URL, {"page": 1})
    assert first.startswith(f"POST-{URL}-")
    assert first != make_request_id("POST", URL, {"page": 2})
    assert make_request_id("GET", URL) == f"GET-{URL}-"
