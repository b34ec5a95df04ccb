"""Piezas comunes de los clientes de Edge Functions.

- Construcción de URLs con query string (descarta vacíos, aplana listas).
- Normalización estricta de sobres: los endpoints devuelven listas desnudas,
  `{data: [...]}` o `{data: {data: [...]}}`; todo lo demás es un error.
"""

from __future__ import annotations

from typing import Any, Mapping
from urllib.parse import quote, urlencode

from pydantic import ValidationError

from adapters.http_client import SafeFetcher
from core.config import AppSettings
from core.domain.errors import RequestError, ResponseFormatError
from core.domain.models import ItemResult, ListResult, Pagination


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def build_query_params(params: Mapping[str, Any] | None) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for key, value in (params or {}).items():
        if _is_empty(value):
            continue
        if isinstance(value, (list, tuple, set)):
            for item in value:
                if not _is_empty(item):
                    pairs.append((f"{key}[]", _stringify(item)))
            continue
        pairs.append((key, _stringify(value)))
    return pairs


def build_url(base: str, *segments: Any, params: Mapping[str, Any] | None = None) -> str:
    url = "/".join([base.rstrip("/"), *(quote(str(s), safe="") for s in segments)])
    query = urlencode(build_query_params(params))
    return f"{url}?{query}" if query else url


def ensure_success(payload: dict[str, Any]) -> None:
    if payload.get("success") is False:
        message = payload.get("message") or payload.get("error") or "Request failed"
        raise RequestError(str(message))


def _extract_list(payload: Any) -> tuple[list[Any], Any, str | None]:
    if isinstance(payload, list):
        return payload, None, None
    if not isinstance(payload, dict):
        raise ResponseFormatError(f"Unexpected response type: {type(payload).__name__}")

    ensure_success(payload)
    data = payload.get("data")
    message = payload.get("message")
    if isinstance(data, list):
        return data, payload.get("pagination"), message
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        return data["data"], data.get("pagination") or payload.get("pagination"), message or data.get("message")
    raise ResponseFormatError("Unexpected list response envelope")


def normalize_list_response(payload: Any, *, limit: int = 50, offset: int = 0) -> ListResult:
    """Lleva cualquier sobre de listado a `ListResult`."""

    items, raw_pagination, message = _extract_list(payload)
    if any(not isinstance(item, dict) for item in items):
        raise ResponseFormatError("List items must be JSON objects")

    if raw_pagination is None:
        pagination = Pagination(limit=limit, offset=offset, total=len(items))
    elif isinstance(raw_pagination, dict):
        try:
            pagination = Pagination.model_validate(raw_pagination)
        except ValidationError as exc:
            raise ResponseFormatError(f"Invalid pagination block: {exc}") from exc
    else:
        raise ResponseFormatError("Pagination must be an object")

    return ListResult(success=True, data=items, pagination=pagination, message=message)


def normalize_item_response(payload: Any) -> ItemResult:
    if payload is None:
        return ItemResult()
    if not isinstance(payload, dict):
        raise ResponseFormatError(f"Unexpected response type: {type(payload).__name__}")

    ensure_success(payload)
    data = payload.get("data")
    if data is not None and not isinstance(data, dict):
        raise ResponseFormatError("Item payload must be a JSON object")
    warnings = payload.get("warnings") or []
    return ItemResult(
        data=data,
        message=payload.get("message"),
        warnings=[str(w) for w in warnings] if isinstance(warnings, list) else [],
    )


class EdgeFunctionClient:
    """Base de los clientes: conoce su Edge Function y su nombre de componente."""

    function_name: str = ""
    component_name: str = "Unknown"

    def __init__(self, fetcher: SafeFetcher, settings: AppSettings | None = None) -> None:
        self._fetcher = fetcher
        self._settings = settings or fetcher.settings

    def url(self, *segments: Any, params: Mapping[str, Any] | None = None) -> str:
        base = f"{self._settings.functions_url}/{self.function_name}"
        return build_url(base, *segments, params=params)

    async def _fetch(self, url: str, *, component_name: str | None = None, **kwargs: Any) -> Any:
        return await self._fetcher.fetch(
            url,
            component_name=component_name or self.component_name,
            **kwargs,
        )
