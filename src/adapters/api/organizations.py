"""Cliente de la Edge Function `manage-organizations` (partners)."""

from __future__ import annotations

from typing import Any, Mapping

from adapters.api.base import EdgeFunctionClient, normalize_item_response, normalize_list_response
from core.domain.models import ItemResult, ListResult

EXPORT_FORMATS = ("csv", "xlsx", "json")


def export_response_type(fmt: str) -> str:
    """CSV/JSON llegan como texto; XLSX como binario."""

    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")
    return "bytes" if fmt == "xlsx" else "text"


class OrganizationsAPI(EdgeFunctionClient):
    function_name = "manage-organizations"
    component_name = "OrganizationsService"

    async def list_organizations(
        self,
        params: Mapping[str, Any] | None = None,
        *,
        component_name: str | None = None,
    ) -> ListResult:
        params = dict(params or {})
        payload = await self._fetch(
            self.url(params=params),
            method="GET",
            retry_count=1,
            component_name=component_name,
        )
        return normalize_list_response(
            payload,
            limit=int(params.get("limit") or 50),
            offset=int(params.get("offset") or 0),
        )

    async def get_organization(self, organization_id: str) -> ItemResult:
        payload = await self._fetch(self.url(organization_id), method="GET")
        return normalize_item_response(payload)

    async def create_organization(self, data: Mapping[str, Any]) -> ItemResult:
        payload = await self._fetch(self.url(), method="POST", json=dict(data), retry_count=0)
        return normalize_item_response(payload)

    async def update_organization(self, organization_id: str, data: Mapping[str, Any]) -> ItemResult:
        payload = await self._fetch(self.url(organization_id), method="PUT", json=dict(data), retry_count=0)
        return normalize_item_response(payload)

    async def delete_organization(self, organization_id: str) -> ItemResult:
        payload = await self._fetch(self.url(organization_id), method="DELETE", retry_count=0)
        return normalize_item_response(payload)

    async def export_organizations(
        self,
        params: Mapping[str, Any] | None = None,
        fmt: str = "csv",
    ) -> str | bytes:
        response_type = export_response_type(fmt)
        query = {**dict(params or {}), "export": fmt}
        return await self._fetch(self.url(params=query), method="GET", response_type=response_type)
