"""Cliente de la Edge Function `get-sales-advance-two` (ventas con filtros avanzados).

Los filtros viajan en el cuerpo (POST, por defecto) o como query string
(GET). Con `export` presente la respuesta no es el sobre JSON estándar sino
el archivo en el formato pedido. El detalle de una venta vive en otra
función, `get-sale`.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from adapters.api.base import EdgeFunctionClient, build_url, normalize_item_response, normalize_list_response
from adapters.api.organizations import export_response_type
from core.domain.models import ItemResult, ListResult, SalesStats
from core.services.sales_stats import calculate_stats

SALE_LOOKUPS = ("id", "transaction_id", "stove_serial_no")


class SalesAdvancedAPI(EdgeFunctionClient):
    function_name = "get-sales-advance-two"
    component_name = "SalesAdvancedService"

    async def _request(
        self,
        filters: Mapping[str, Any],
        method: str,
        *,
        response_type: str = "json",
        component_name: str | None = None,
    ) -> Any:
        method = method.upper()
        if method == "GET":
            return await self._fetch(
                self.url(params=filters),
                method="GET",
                response_type=response_type,
                component_name=component_name,
            )
        return await self._fetch(
            self.url(),
            method=method,
            json=dict(filters),
            response_type=response_type,
            component_name=component_name,
        )

    async def list_sales(
        self,
        filters: Mapping[str, Any] | None = None,
        method: str = "POST",
        *,
        component_name: str | None = None,
    ) -> ListResult:
        filters = {
            k: v
            for k, v in (filters or {}).items()
            if k != "export" and v is not None and v != "" and v != []
        }
        payload = await self._request(filters, method, component_name=component_name)
        limit = int(filters.get("limit") or 100)
        page = int(filters.get("page") or 1)
        return normalize_list_response(payload, limit=limit, offset=(page - 1) * limit)

    async def export_sales(
        self,
        filters: Mapping[str, Any] | None = None,
        fmt: str = "csv",
        fields: Sequence[str] = (),
    ) -> str | bytes:
        response_type = export_response_type(fmt)
        export_filters: dict[str, Any] = {**dict(filters or {}), "export": fmt}
        if fields:
            export_filters["exportFields"] = list(fields)
        return await self._request(export_filters, "POST", response_type=response_type)

    async def stats(self, filters: Mapping[str, Any] | None = None) -> SalesStats:
        # No hay endpoint de estadísticas: se calculan sobre una página grande.
        result = await self.list_sales({**dict(filters or {}), "limit": 1000, "includeAddress": True})
        return calculate_stats(result.data)

    async def get_sale(self, value: str, by: str = "id") -> ItemResult:
        """Detalle de una venta vía `get-sale`, por id, transacción o número de serie."""

        if by not in SALE_LOOKUPS:
            raise ValueError(f"Unsupported sale lookup: {by}")
        payload = await self._fetch(
            build_url(f"{self._settings.functions_url}/get-sale", params={by: value}),
            method="GET",
        )
        return normalize_item_response(payload)
