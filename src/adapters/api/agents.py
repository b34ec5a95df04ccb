"""Clientes de agentes de ventas y de agentes super-admin (SAA)."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from adapters.api.base import (
    EdgeFunctionClient,
    build_url,
    normalize_item_response,
    normalize_list_response,
)
from core.domain.models import ItemResult, ListResult

_UPDATABLE_AGENT_FIELDS = ("full_name", "email", "phone")


def _clean_agent_update(updates: Mapping[str, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for name in _UPDATABLE_AGENT_FIELDS:
        if name not in updates:
            continue
        value = updates[name]
        if name == "email" and value:
            value = str(value).strip().lower()
        elif isinstance(value, str):
            value = value.strip() or None
        payload[name] = value
    if not payload:
        raise ValueError("At least one field must be provided for update")
    return payload


class SalesAgentsAPI(EdgeFunctionClient):
    """CRUD de agentes de ventas de la organización (`manage-agents`)."""

    function_name = "manage-agents"
    component_name = "SalesAgentsService"

    async def list_agents(
        self,
        page: int = 1,
        limit: int = 10,
        search: str = "",
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> ListResult:
        params = {
            "page": page,
            "limit": limit,
            "sortBy": sort_by,
            "sortOrder": sort_order,
            "search": search.strip(),
        }
        payload = await self._fetch(self.url(params=params), method="GET")
        return normalize_list_response(payload, limit=limit, offset=(page - 1) * limit)

    async def get_agent(self, agent_id: str) -> ItemResult:
        return normalize_item_response(await self._fetch(self.url(agent_id), method="GET"))

    async def create_agent(
        self,
        name: str,
        email: str,
        password: str,
        phone: str | None = None,
    ) -> ItemResult:
        body: dict[str, Any] = {
            "full_name": name.strip(),
            "email": email.strip().lower(),
            "password": password,
        }
        if phone:
            body["phone"] = phone.strip()
        payload = await self._fetch(self.url(), method="POST", json=body, retry_count=0)
        return normalize_item_response(payload)

    async def update_agent(self, agent_id: str, updates: Mapping[str, Any]) -> ItemResult:
        body = _clean_agent_update(updates)
        payload = await self._fetch(self.url(agent_id), method="PUT", json=body, retry_count=0)
        return normalize_item_response(payload)

    async def delete_agent(self, agent_id: str) -> ItemResult:
        payload = await self._fetch(self.url(agent_id), method="DELETE", retry_count=0)
        return normalize_item_response(payload)


class SuperAdminAgentsAPI(EdgeFunctionClient):
    """Gestión de SAAs, sus organizaciones asignadas y su portal.

    El portal (dashboard y aprobación de ventas) vive en Edge Functions
    distintas, por eso algunas URLs no cuelgan de `function_name`.
    """

    function_name = "super-admin-agents"
    component_name = "SuperAdminAgentsService"

    def _function_url(self, function: str, *segments: Any) -> str:
        return build_url(f"{self._settings.functions_url}/{function}", *segments)

    async def list_agents(self, params: Mapping[str, Any] | None = None) -> ListResult:
        params = dict(params or {})
        payload = await self._fetch(self.url(params=params), method="GET")
        return normalize_list_response(
            payload,
            limit=int(params.get("limit") or 50),
            offset=int(params.get("offset") or 0),
        )

    async def get_agent(self, agent_id: str) -> ItemResult:
        return normalize_item_response(await self._fetch(self.url(agent_id), method="GET"))

    async def create_agent(self, data: Mapping[str, Any]) -> ItemResult:
        payload = await self._fetch(self.url(), method="POST", json=dict(data), retry_count=0)
        return normalize_item_response(payload)

    async def update_agent(self, agent_id: str, data: Mapping[str, Any]) -> ItemResult:
        payload = await self._fetch(self.url(agent_id), method="PATCH", json=dict(data), retry_count=0)
        return normalize_item_response(payload)

    async def delete_agent(self, agent_id: str) -> ItemResult:
        payload = await self._fetch(self.url(agent_id), method="DELETE", retry_count=0)
        return normalize_item_response(payload)

    async def get_agent_organizations(self, agent_id: str) -> ListResult:
        payload = await self._fetch(self.url(agent_id, "organizations"), method="GET")
        return normalize_list_response(payload)

    async def set_agent_organizations(self, agent_id: str, organization_ids: Sequence[str]) -> ItemResult:
        """Reemplaza por completo las asignaciones del agente."""

        payload = await self._fetch(
            self.url(agent_id, "organizations"),
            method="POST",
            json={"organization_ids": list(organization_ids)},
            retry_count=0,
        )
        return normalize_item_response(payload)

    async def remove_agent_organization(self, agent_id: str, organization_id: str) -> ItemResult:
        payload = await self._fetch(
            self.url(agent_id, "organizations", organization_id),
            method="DELETE",
            retry_count=0,
        )
        return normalize_item_response(payload)

    async def dashboard_stats(self) -> ItemResult:
        payload = await self._fetch(self._function_url("super-admin-agent-dashboard"), method="GET")
        return normalize_item_response(payload)

    async def approve_sale(self, sale_id: str) -> ItemResult:
        payload = await self._fetch(self._function_url("approve-sale", sale_id), method="PATCH", retry_count=0)
        return normalize_item_response(payload)
