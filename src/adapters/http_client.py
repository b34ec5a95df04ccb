"""Wrapper de httpx: Safe Fetch.

Responsabilidad:
- Construir el `httpx.AsyncClient` con timeouts/headers comunes.
- Ejecutar cada llamada con token bearer, timeout de reloj que cancela,
  reintentos acotados (tenacity) y clasificación tipada de errores.
- Registrar cada llamada en el `RequestTracker` para poder cancelarla.
"""

from __future__ import annotations

import asyncio
import hashlib
import json as jsonlib
import logging
from typing import Any, Literal

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from core.config import AppSettings
from core.domain.errors import (
    AuthError,
    ConsoleError,
    NotFoundError,
    PermissionDeniedError,
    RequestCancelledError,
    RequestError,
    ResponseFormatError,
    ServerError,
)
from core.interfaces.auth import TokenProvider
from core.services.request_tracker import CancellationHandle, RequestTracker

logger = logging.getLogger(__name__)

ResponseType = Literal["json", "text", "bytes"]

_NON_RETRYABLE = (
    AuthError,
    PermissionDeniedError,
    RequestCancelledError,
    asyncio.CancelledError,
)


def build_async_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Crea un `httpx.AsyncClient` con defaults seguros.

    El timeout de httpx queda como red de seguridad; la cancelación por
    tiempo la gobierna `SafeFetcher`.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "Accept": "application/json",
        "User-Agent": "partner-console/0.1",
    }
    if settings.supabase_anon_key:
        headers["apikey"] = settings.supabase_anon_key
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.request_timeout_seconds + 5.0),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )


def make_request_id(method: str, url: str, body: Any = None) -> str:
    """`METHOD-url-hash`: requests idénticas producen ids idénticos."""

    raw = jsonlib.dumps(body, sort_keys=True, default=str) if body is not None else ""
    digest = hashlib.sha1(raw.encode("utf-8")).hexdigest()[:10] if raw else ""
    return f"{method.upper()}-{url}-{digest}"


def _server_message(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        for key in ("message", "error_description", "error", "msg"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def classify_response(response: httpx.Response) -> ConsoleError:
    """Traduce un status no-2xx a la taxonomía tipada."""

    status = response.status_code
    if status == 401:
        return AuthError("Authentication required. Please log in again.", status_code=status)
    if status == 403:
        return PermissionDeniedError(
            "Access denied. You do not have permission to access this resource.",
            status_code=status,
        )
    if status >= 500:
        return ServerError("Server error. Please try again later.", status_code=status)

    message = _server_message(response) or f"HTTP {status}: {response.reason_phrase}"
    if status == 404:
        return NotFoundError(message, status_code=status)
    return RequestError(message, status_code=status)


class SafeFetcher:
    """Ejecuta requests autenticadas, cancelables y con reintentos acotados."""

    def __init__(
        self,
        token_provider: TokenProvider,
        tracker: RequestTracker,
        *,
        client: httpx.AsyncClient | None = None,
        settings: AppSettings | None = None,
        backoff_seconds: float | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._tokens = token_provider
        self._tracker = tracker
        self._owns_client = client is None
        self._client = client or build_async_client(self._settings)
        self._backoff = (
            self._settings.retry_backoff_seconds if backoff_seconds is None else backoff_seconds
        )

    @property
    def tracker(self) -> RequestTracker:
        return self._tracker

    @property
    def settings(self) -> AppSettings:
        return self._settings

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> SafeFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def for_component(self, component_name: str) -> ComponentFetcher:
        return ComponentFetcher(self, component_name)

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        json: Any = None,
        params: Any = None,
        headers: dict[str, str] | None = None,
        files: Any = None,
        data: Any = None,
        timeout: float | None = None,
        retry_count: int | None = None,
        component_name: str = "Unknown",
        response_type: ResponseType = "json",
    ) -> Any:
        """Ejecuta la request y devuelve el cuerpo ya parseado.

        Lanza siempre una subclase de `ConsoleError`: `AuthError` y
        `PermissionDeniedError` no se reintentan, tampoco
        `RequestCancelledError`; el resto se reintenta `retry_count` veces.
        """

        method = method.upper()
        request_id = make_request_id(method, url, json)
        retries = self._settings.retry_count if retry_count is None else retry_count
        timeout = self._settings.request_timeout_seconds if timeout is None else timeout

        def _log_retry(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            logger.warning(
                "[%s] %s failed (%s), retrying (%d left)",
                component_name,
                request_id,
                exc,
                retries + 1 - state.attempt_number,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=wait_fixed(self._backoff),
            retry=retry_if_not_exception_type(_NON_RETRYABLE),
            before_sleep=_log_retry,
            reraise=True,
        )
        result: Any = None
        async for attempt in retrying:
            with attempt:
                result = await self._attempt(
                    url,
                    request_id=request_id,
                    method=method,
                    json=json,
                    params=params,
                    headers=headers,
                    files=files,
                    data=data,
                    timeout=timeout,
                    component_name=component_name,
                    response_type=response_type,
                )
        return result

    async def _attempt(
        self,
        url: str,
        *,
        request_id: str,
        method: str,
        json: Any,
        params: Any,
        headers: dict[str, str] | None,
        files: Any,
        data: Any,
        timeout: float,
        component_name: str,
        response_type: ResponseType,
    ) -> Any:
        try:
            token = await self._tokens.get_valid_token()
        except AuthError:
            raise
        except Exception as exc:
            raise AuthError(f"Authentication required: {exc}") from exc

        merged: dict[str, str] = {}
        if files is None:
            merged["Content-Type"] = "application/json"
        merged.update(headers or {})
        merged["Authorization"] = f"Bearer {token}"

        task = asyncio.create_task(
            self._client.request(
                method,
                url,
                params=params,
                json=json,
                files=files,
                data=data,
                headers=merged,
            )
        )
        handle = CancellationHandle(task)
        self._tracker.register(request_id, handle, component_name, url)

        def _on_timeout() -> None:
            logger.warning("[%s] Request timeout: %s", component_name, request_id)
            handle.cancel("timeout")

        timer = asyncio.get_running_loop().call_later(timeout, _on_timeout)
        try:
            response = await task
        except asyncio.CancelledError:
            if handle.cancelled:
                logger.debug("[%s] Request aborted (%s): %s", component_name, handle.reason, request_id)
                raise RequestCancelledError(reason=handle.reason or "cancelled") from None
            raise
        except httpx.HTTPError as exc:
            raise RequestError(f"Network error: {exc}") from exc
        finally:
            timer.cancel()
            self._tracker.unregister(request_id, handle)

        logger.debug("[%s] %s -> HTTP %d", component_name, request_id, response.status_code)
        if not response.is_success:
            raise classify_response(response)

        if response_type == "text":
            return response.text
        if response_type == "bytes":
            return response.content
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ResponseFormatError("Response body is not valid JSON") from exc


class ComponentFetcher:
    """Safe Fetch ligado a un nombre de componente (vista)."""

    def __init__(self, fetcher: SafeFetcher, component_name: str) -> None:
        self._fetcher = fetcher
        self.component_name = component_name

    async def fetch(self, url: str, **kwargs: Any) -> Any:
        return await self._fetcher.fetch(url, component_name=self.component_name, **kwargs)

    def abort_all(self) -> int:
        return self._fetcher.tracker.cancel_all(self.component_name)
