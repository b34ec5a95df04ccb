"""Gestor de tokens contra Supabase GoTrue.

Responsabilidad:
- Guardar la sesión (access/refresh token + expiración) y persistirla.
- Devolver un token válido, refrescándolo cuando expira en menos de
  `token_refresh_threshold_seconds`.
- Garantizar un único refresh en vuelo: los llamadores concurrentes esperan
  la misma tarea compartida.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
from pydantic import ValidationError

from adapters.http_client import build_async_client, classify_response
from adapters.session_store import TokenStore
from core.config import AppSettings
from core.domain.errors import AuthError, ConsoleError, NoSessionError, ResponseFormatError
from core.domain.models import TokenData

logger = logging.getLogger(__name__)


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


class SupabaseTokenManager:
    """Implementa `TokenProvider` sobre el endpoint `/auth/v1/token`."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        store: TokenStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings or AppSettings()
        self._owns_client = client is None
        self._client = client or build_async_client(self._settings)
        self._store = store or TokenStore(self._settings.resolved_session_file())
        self._clock = clock
        self._token: TokenData | None = self._store.load()
        self._refresh_task: asyncio.Task[str] | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    @property
    def user(self) -> dict[str, Any] | None:
        return self._token.user if self._token else None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def set_login_data(self, session: dict[str, Any]) -> TokenData:
        """Guarda una sesión con la forma que devuelve GoTrue."""

        access_token = session.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ResponseFormatError("No access token in session payload")

        expires_at = session.get("expires_at")
        if not expires_at:
            expires_at = self._clock() + float(session.get("expires_in") or 3600)

        try:
            token = TokenData(
                access_token=access_token,
                refresh_token=session.get("refresh_token"),
                expires_at=float(expires_at),
                created_at=self._clock(),
                user=session.get("user"),
            )
        except ValidationError as exc:
            raise ResponseFormatError(f"Invalid session payload: {exc}") from exc

        self._token = token
        self._store.save(token)
        return token

    async def sign_in(self, email: str, password: str) -> TokenData:
        response = await self._client.post(
            f"{self._settings.auth_url}/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if not response.is_success:
            error = classify_response(response)
            raise AuthError(error.message, status_code=response.status_code)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ResponseFormatError("Sign-in response is not valid JSON") from exc
        token = self.set_login_data(payload)
        logger.info("Signed in as %s", email)
        return token

    async def sign_out(self) -> None:
        token = self._token
        if token is not None:
            try:
                await self._client.post(
                    f"{self._settings.auth_url}/logout",
                    headers={"Authorization": f"Bearer {token.access_token}"},
                )
            except httpx.HTTPError as exc:
                logger.warning("Remote logout failed, clearing local session anyway: %s", exc)
        self.clear_token()

    def clear_token(self) -> None:
        logger.debug("Clearing stored session")
        self._store.clear()
        self._token = None
        self._refresh_task = None

    def _is_expired(self, token: TokenData) -> bool:
        return token.expires_at <= self._clock()

    def needs_refresh(self) -> bool:
        if self._token is None:
            return True
        remaining = self._token.expires_at - self._clock()
        return remaining < self._settings.token_refresh_threshold_seconds

    async def get_valid_token(self) -> str:
        if self._token is None:
            raise NoSessionError("No active session. Please log in.")
        if not self.needs_refresh():
            return self._token.access_token

        if self._refresh_task is None:
            task = asyncio.create_task(self._perform_refresh())
            task.add_done_callback(self._forget_refresh)
            self._refresh_task = task
        # shield: si un llamador se cancela, el refresh sigue para los demás.
        return await asyncio.shield(self._refresh_task)

    def _forget_refresh(self, task: asyncio.Task[str]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _perform_refresh(self) -> str:
        token = self._token
        try:
            if token is None or not token.refresh_token:
                raise NoSessionError("No refresh token available")
            fresh = await asyncio.wait_for(
                self._request_refresh(token.refresh_token),
                timeout=self._settings.token_refresh_timeout_seconds,
            )
            logger.info("Token refreshed, expires at %s", _iso(fresh.expires_at))
            return fresh.access_token
        except (ConsoleError, httpx.HTTPError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Token refresh failed: %s", exc)
            if token is not None and not self._is_expired(token):
                logger.info("Falling back to current session token")
                return token.access_token
            self.clear_token()
            raise NoSessionError("Token refresh failed and no valid session available") from exc

    async def _request_refresh(self, refresh_token: str) -> TokenData:
        response = await self._client.post(
            f"{self._settings.auth_url}/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        if not response.is_success:
            raise classify_response(response)
        payload = response.json()
        if not isinstance(payload, dict):
            raise ResponseFormatError("Unexpected refresh response")
        return self.set_login_data(payload)

    def token_info(self) -> dict[str, Any]:
        if self._token is None:
            return {"has_token": False}

        remaining = self._token.expires_at - self._clock()
        user = self._token.user or {}
        return {
            "has_token": True,
            "expires_at": _iso(self._token.expires_at),
            "created_at": _iso(self._token.created_at),
            "minutes_until_expiry": round(remaining / 60),
            "needs_refresh": self.needs_refresh(),
            "user_id": user.get("id"),
            "email": user.get("email"),
        }
