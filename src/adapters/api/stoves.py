"""Inventario de estufas: Edge Functions `manage-stove-ids` y `get-stove-stats`.

Estos endpoints paginan por `page`/`page_size` y cuentan con `total_count`;
aquí se traducen a la `Pagination` común para que las vistas no distingan.
"""

from __future__ import annotations

from typing import Any, Sequence

from pydantic import ValidationError

from adapters.api.base import (
    EdgeFunctionClient,
    build_url,
    ensure_success,
    normalize_item_response,
    normalize_list_response,
)
from core.domain.errors import ResponseFormatError
from core.domain.models import ItemResult, ListResult, StoveStats

STOVE_STATUSES = ("available", "sold")


def _org_ids(organization_ids: Sequence[str]) -> str | None:
    ids = [str(i) for i in organization_ids if i]
    return ",".join(ids) if ids else None


def page_size_pagination(raw: dict[str, Any], *, page: int, page_size: int) -> dict[str, Any]:
    """`{page, page_size, total_count, total_pages}` -> campos de `Pagination`."""

    try:
        size = int(raw.get("page_size") or page_size)
        current = int(raw.get("page") or page)
    except (TypeError, ValueError) as exc:
        raise ResponseFormatError(f"Invalid pagination block: {raw!r}") from exc
    return {
        "limit": size,
        "offset": max(current - 1, 0) * size,
        "total": raw.get("total_count", 0),
        "totalPages": raw.get("total_pages"),
        "page": current,
    }


class StoveIdsAPI(EdgeFunctionClient):
    function_name = "manage-stove-ids"
    component_name = "StoveIdsService"

    async def list_stove_ids(
        self,
        organization_ids: Sequence[str] = (),
        *,
        page: int = 1,
        page_size: int = 25,
        stove_id: str | None = None,
        status: str | None = None,
        branch: str | None = None,
        state: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        component_name: str | None = None,
    ) -> ListResult:
        """Listado paginado; sin organizaciones el backend devuelve todas las visibles."""

        if status is not None and status not in STOVE_STATUSES:
            raise ValueError(f"Unsupported stove status: {status}")
        params = {
            "page": page,
            "page_size": page_size,
            "organization_ids": _org_ids(organization_ids),
            "stove_id": stove_id,
            "status": status,
            "branch": branch,
            "state": state,
            "date_from": date_from,
            "date_to": date_to,
        }
        payload = await self._fetch(self.url(params=params), method="GET", component_name=component_name)
        if isinstance(payload, dict) and isinstance(payload.get("pagination"), dict):
            payload = {
                **payload,
                "pagination": page_size_pagination(payload["pagination"], page=page, page_size=page_size),
            }
        return normalize_list_response(payload, limit=page_size, offset=(page - 1) * page_size)

    async def get_stove(self, stove_id: str) -> ItemResult:
        payload = await self._fetch(self.url(params={"id": stove_id}), method="GET")
        # Este endpoint devuelve el registro sin sobre `data`.
        if isinstance(payload, dict) and "data" not in payload:
            ensure_success(payload)
            return ItemResult(data=payload)
        return normalize_item_response(payload)

    async def stove_stats(self, organization_ids: Sequence[str] = ()) -> StoveStats:
        payload = await self._fetch(
            build_url(
                f"{self._settings.functions_url}/get-stove-stats",
                params={"organization_ids": _org_ids(organization_ids)},
            ),
            method="GET",
        )
        if not isinstance(payload, dict):
            raise ResponseFormatError(f"Unexpected response type: {type(payload).__name__}")
        ensure_success(payload)
        try:
            return StoveStats.model_validate(payload.get("data") or {})
        except ValidationError as exc:
            raise ResponseFormatError(f"Invalid stove statistics: {exc}") from exc
