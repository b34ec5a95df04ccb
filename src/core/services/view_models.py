"""View models: estado de carga, filtros y paginación por pantalla.

Responsabilidad:
- Una instancia por vista. Tiene su propio `component_name`, y con él
  se etiquetan (y se cancelan) todas sus requests en el `RequestTracker`.
- Estados: idle -> loading -> success | error. `table_loading` es el
  sub-estado de los refetch (filtros, paginación) que no vacía la tabla.
- Como mucho un fetch en curso por instancia: si llega otro mientras tanto,
  se descarta (drop-on-overlap). No hay cola ni latest-wins.
- Una cancelación nunca deja error visible; en una vista viva se notifica
  el fin de la carga. Tras `close()` no se notifica ningún cambio: las
  requests del componente se cancelan, igual que las tareas propias (debounce).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Coroutine, Mapping, Sequence, TypeVar

from adapters.api.organizations import OrganizationsAPI
from adapters.api.sales import SalesAdvancedAPI
from core.domain.errors import ConsoleError, ErrorKind, RequestCancelledError
from core.domain.models import ItemResult, ListResult, PageInfo, Record, SalesStats
from core.interfaces.auth import TokenProvider
from core.services.request_tracker import RequestTracker
from core.services.sales_stats import calculate_stats

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class ViewState:
    status: FetchStatus = FetchStatus.IDLE
    loading: bool = False
    table_loading: bool = False
    error: str | None = None
    data: list[Record] = field(default_factory=list)
    pagination: PageInfo = field(default_factory=PageInfo)
    filters: dict[str, Any] = field(default_factory=dict)
    stats: SalesStats | None = None


ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.AUTH: "Authentication failed. Please log in again.",
    ErrorKind.PERMISSION: "Access denied. You do not have permission to view this data.",
    ErrorKind.NOT_FOUND: "Service not found. Please check the API configuration.",
    ErrorKind.SERVER: "Server error. Please try again later.",
}


def error_message(exc: ConsoleError, fallback: str) -> str:
    """Mensaje por página a partir del tipo de error (nunca del texto)."""

    if exc.kind in ERROR_MESSAGES:
        return ERROR_MESSAGES[exc.kind]
    return exc.message or fallback


StateListener = Callable[[ViewState], None]


class PagedViewModel:
    component_name = "Unknown"
    default_filters: dict[str, Any] = {}
    error_fallback = "Failed to load data"

    def __init__(
        self,
        token_provider: TokenProvider,
        tracker: RequestTracker,
        *,
        on_change: StateListener | None = None,
        debounce_seconds: float = 0.3,
        stale_after_seconds: float = 30.0,
    ) -> None:
        self._tokens = token_provider
        self._tracker = tracker
        self._on_change = on_change
        self._debounce_seconds = debounce_seconds
        self._stale_after = stale_after_seconds

        self._closed = False
        self._in_progress = False
        self._tasks: set[asyncio.Task[Any]] = set()
        self._debounce_task: asyncio.Task[Any] | None = None
        self._pending_filters: dict[str, Any] = {}

        self.state = ViewState(filters=dict(self.default_filters))

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def mount(self) -> bool:
        if not self._tokens.is_authenticated:
            logger.debug("[%s] Not authenticated, skipping initial load", self.component_name)
            return False
        return await self.fetch(initial=True)

    def close(self) -> int:
        """Desmonta la vista: cancela tareas propias y requests del componente."""

        if self._closed:
            return 0
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._debounce_task = None
        cancelled = self._tracker.cancel_all(self.component_name)
        logger.debug("[%s] Closed, %d request(s) cancelled", self.component_name, cancelled)
        return cancelled

    async def __aenter__(self) -> PagedViewModel:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def on_visibility_change(self, hidden: bool) -> int:
        """Al volver a ser visible destraba los flags de carga y poda lo viejo."""

        if hidden or self._closed:
            return 0
        if self.state.loading or self.state.table_loading:
            self._set(loading=False, table_loading=False)
        return self._tracker.prune_stale(self._stale_after)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Estado
    # ------------------------------------------------------------------

    def _set(self, **changes: Any) -> None:
        if self._closed:
            return
        for name, value in changes.items():
            setattr(self.state, name, value)
        if self._on_change is not None:
            self._on_change(self.state)

    async def _load(self, filters: dict[str, Any]) -> ListResult:
        raise NotImplementedError

    def _page_info(self, result: ListResult, filters: dict[str, Any]) -> PageInfo:
        return result.pagination.page_info()

    async def fetch(self, filters: Mapping[str, Any] | None = None, *, initial: bool = False) -> bool:
        """Carga con los filtros actuales más `filters`.

        Devuelve False si la llamada se descartó, se canceló o falló.
        """

        if self._closed:
            return False
        if self._in_progress:
            logger.debug("[%s] Fetch already in progress, dropping request", self.component_name)
            return False
        self._in_progress = True

        # El error previo se limpia al arrancar; una cancelación no lo restaura.
        previous = FetchStatus.IDLE if self.state.status is FetchStatus.ERROR else self.state.status
        merged = {**self.state.filters, **dict(filters or {})}
        flags = {"loading": True} if initial else {"table_loading": True}
        self._set(filters=merged, status=FetchStatus.LOADING, error=None, **flags)

        try:
            result = await self._load(merged)
            pagination = self._page_info(result, merged)
        except RequestCancelledError as exc:
            logger.debug("[%s] Fetch cancelled (%s)", self.component_name, exc.reason)
            # Sin error visible; tras close() `_set` no notifica.
            self._set(status=previous, loading=False, table_loading=False)
            return False
        except ConsoleError as exc:
            logger.warning("[%s] Fetch failed: %s", self.component_name, exc)
            self._set(
                status=FetchStatus.ERROR,
                error=error_message(exc, self.error_fallback),
                loading=False,
                table_loading=False,
            )
            return False
        finally:
            self._in_progress = False

        self._set(
            status=FetchStatus.SUCCESS,
            data=result.data,
            pagination=pagination,
            loading=False,
            table_loading=False,
        )
        return True

    async def refetch(self) -> bool:
        return await self.fetch()

    # ------------------------------------------------------------------
    # Filtros
    # ------------------------------------------------------------------

    async def apply_filters(self, filters: Mapping[str, Any]) -> bool:
        return await self.fetch({**dict(filters), "page": 1})

    def apply_filters_later(self, filters: Mapping[str, Any]) -> asyncio.Task[Any] | None:
        """Debounce trailing: solo se aplica el último lote tras la pausa."""

        if self._closed:
            return None
        self._pending_filters.update(filters)
        if self._debounce_task is not None:
            self._debounce_task.cancel()
        self._debounce_task = self._spawn(self._debounced_apply())
        return self._debounce_task

    async def _debounced_apply(self) -> None:
        await asyncio.sleep(self._debounce_seconds)
        pending, self._pending_filters = self._pending_filters, {}
        self._debounce_task = None
        await self.apply_filters(pending)

    async def search(self, term: str) -> bool:
        return await self.apply_filters({"search": term.strip()})

    async def reset_filters(self) -> bool:
        if self._in_progress:
            return False
        self._set(filters=dict(self.default_filters))
        return await self.fetch()

    async def _mutate(self, action: Awaitable[T], fallback: str) -> T:
        """Operación puntual (alta, edición, borrado, export) con error por página."""

        self._set(error=None)
        try:
            return await action
        except RequestCancelledError:
            raise
        except ConsoleError as exc:
            logger.warning("[%s] %s: %s", self.component_name, fallback, exc)
            self._set(error=ERROR_MESSAGES.get(exc.kind) or f"{fallback}: {exc.message}")
            raise

    async def go_to_page(self, page: int) -> bool:
        return await self.fetch({"page": max(1, page)})

    async def set_page_size(self, limit: int) -> bool:
        return await self.fetch({"page": 1, "limit": limit})


class OrganizationsViewModel(PagedViewModel):
    """Listado de organizaciones: la vista pagina por página, la API por offset."""

    component_name = "OrganizationsPage"
    error_fallback = "Failed to fetch organizations"
    default_filters = {
        "page": 1,
        "limit": 10,
        "search": "",
        "sortBy": "created_at",
        "sortOrder": "desc",
    }

    def __init__(self, api: OrganizationsAPI, token_provider: TokenProvider, tracker: RequestTracker, **kwargs: Any) -> None:
        super().__init__(token_provider, tracker, **kwargs)
        self._api = api

    @staticmethod
    def to_api_params(filters: Mapping[str, Any]) -> dict[str, Any]:
        params = {k: v for k, v in filters.items() if k != "page"}
        limit = int(filters.get("limit") or 10)
        page = int(filters.get("page") or 1)
        params["limit"] = limit
        params["offset"] = (page - 1) * limit
        return params

    async def _load(self, filters: dict[str, Any]) -> ListResult:
        return await self._api.list_organizations(
            self.to_api_params(filters),
            component_name=self.component_name,
        )

    async def create(self, data: Mapping[str, Any]) -> ItemResult:
        result = await self._mutate(self._api.create_organization(data), "Failed to create organization")
        await self.refetch()
        return result

    async def update(self, organization_id: str, data: Mapping[str, Any]) -> ItemResult:
        result = await self._mutate(
            self._api.update_organization(organization_id, data), "Failed to update organization"
        )
        await self.refetch()
        return result

    async def delete(self, organization_id: str) -> ItemResult:
        result = await self._mutate(self._api.delete_organization(organization_id), "Failed to delete organization")
        if result.warnings:
            logger.warning("Organization %s deleted with warnings: %s", organization_id, result.warnings)
        await self.refetch()
        return result

    async def export(self, fmt: str = "csv") -> str | bytes:
        params = self.to_api_params(self.state.filters)
        params.pop("limit", None)
        params.pop("offset", None)
        return await self._mutate(self._api.export_organizations(params, fmt), "Failed to export organizations")


class SalesAdvancedViewModel(PagedViewModel):
    """Ventas con filtros avanzados: page/limit viajan en el cuerpo POST."""

    component_name = "SalesAdvancedPage"
    error_fallback = "Failed to fetch sales data"
    default_filters = {
        "page": 1,
        "limit": 100,
        "sortBy": "created_at",
        "sortOrder": "desc",
        "includeAddress": True,
        "includeCreator": True,
    }

    def __init__(self, api: SalesAdvancedAPI, token_provider: TokenProvider, tracker: RequestTracker, **kwargs: Any) -> None:
        super().__init__(token_provider, tracker, **kwargs)
        self._api = api

    async def _load(self, filters: dict[str, Any]) -> ListResult:
        return await self._api.list_sales(filters, component_name=self.component_name)

    def _page_info(self, result: ListResult, filters: dict[str, Any]) -> PageInfo:
        info = result.pagination.page_info()
        if result.pagination.page is None:
            # El backend no siempre devuelve página: se toma la pedida.
            info.page = int(filters.get("page") or 1)
        return info

    async def fetch_stats(self) -> SalesStats | None:
        """Estadísticas sobre los datos ya cargados, o una página grande si no hay."""

        if self.state.data:
            stats = calculate_stats(self.state.data)
        else:
            try:
                stats = await self._api.stats(
                    {k: v for k, v in self.state.filters.items() if k not in ("page", "limit")}
                )
            except RequestCancelledError:
                return None
        self._set(stats=stats)
        return stats

    async def handle_table_change(
        self,
        page: int,
        limit: int,
        sort_by: str | None = None,
        sort_order: str | None = None,
    ) -> bool:
        changes: dict[str, Any] = {"page": page, "limit": limit}
        if sort_by:
            changes["sortBy"] = sort_by
        if sort_order:
            changes["sortOrder"] = sort_order
        return await self.fetch(changes)

    async def search_by_location(
        self,
        states: Sequence[str] = (),
        cities: Sequence[str] = (),
        lgas: Sequence[str] = (),
    ) -> bool:
        return await self.apply_filters({"states": list(states), "cities": list(cities), "lgas": list(lgas)})

    async def search_by_amount(self, amount_min: float | None, amount_max: float | None) -> bool:
        return await self.apply_filters({"amountMin": amount_min, "amountMax": amount_max})

    async def search_by_date_range(self, date_from: str | None, date_to: str | None) -> bool:
        return await self.apply_filters({"dateFrom": date_from, "dateTo": date_to})

    async def export(self, fmt: str = "csv", fields: Sequence[str] = ()) -> str | bytes:
        filters = {k: v for k, v in self.state.filters.items() if k not in ("page", "limit")}
        return await self._mutate(self._api.export_sales(filters, fmt, fields), "Failed to export sales")
