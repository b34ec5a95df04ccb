"""Cableado de servicios para los comandos de la CLI.

Por qué un runtime explícito:
- El tracker y el token manager son instancias inyectadas, no singletons
  de módulo; cada invocación de la CLI crea las suyas.
- Los comandos son síncronos (Typer); aquí se puentea a asyncio y se
  traduce `ConsoleError` a un código de salida.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

import typer
from rich.console import Console

from adapters.api import (
    OrganizationCSVImportAPI,
    OrganizationsAPI,
    SalesAdvancedAPI,
    SalesAgentsAPI,
    StoveIdsAPI,
    SuperAdminAgentsAPI,
)
from adapters.http_client import SafeFetcher, build_async_client
from adapters.session_store import TokenStore
from adapters.token_manager import SupabaseTokenManager
from core.config import AppSettings
from core.domain.errors import ConsoleError, CSVValidationError
from core.services.request_tracker import RequestTracker

T = TypeVar("T")

console = Console()
err_console = Console(stderr=True)


@dataclass
class Runtime:
    settings: AppSettings
    tokens: SupabaseTokenManager
    tracker: RequestTracker
    fetcher: SafeFetcher

    @property
    def organizations(self) -> OrganizationsAPI:
        return OrganizationsAPI(self.fetcher)

    @property
    def sales(self) -> SalesAdvancedAPI:
        return SalesAdvancedAPI(self.fetcher)

    @property
    def csv_import(self) -> OrganizationCSVImportAPI:
        return OrganizationCSVImportAPI(self.fetcher)

    @property
    def stoves(self) -> StoveIdsAPI:
        return StoveIdsAPI(self.fetcher)

    @property
    def agents(self) -> SalesAgentsAPI:
        return SalesAgentsAPI(self.fetcher)

    @property
    def super_admin_agents(self) -> SuperAdminAgentsAPI:
        return SuperAdminAgentsAPI(self.fetcher)

    def view_model_options(self) -> dict[str, Any]:
        return {
            "debounce_seconds": self.settings.filter_debounce_seconds,
            "stale_after_seconds": self.settings.stale_request_seconds,
        }


@asynccontextmanager
async def open_runtime(settings: AppSettings | None = None) -> AsyncIterator[Runtime]:
    settings = settings or AppSettings()
    client = build_async_client(settings)
    tokens = SupabaseTokenManager(
        settings,
        client=client,
        store=TokenStore(settings.resolved_session_file()),
    )
    tracker = RequestTracker()
    fetcher = SafeFetcher(tokens, tracker, client=client, settings=settings)
    try:
        yield Runtime(settings=settings, tokens=tokens, tracker=tracker, fetcher=fetcher)
    finally:
        await client.aclose()


def print_error(exc: ConsoleError) -> None:
    err_console.print(f"[bold red]Error ({exc.kind.value}):[/bold red] {exc.message}")
    if isinstance(exc, CSVValidationError):
        for line in exc.errors:
            err_console.print(f"  - {line}")


def run_with_runtime(func: Callable[[Runtime], Awaitable[T]]) -> T:
    """Ejecuta `func(runtime)` en un loop nuevo; errores tipados -> exit 1."""

    async def _main() -> T:
        async with open_runtime() as runtime:
            return await func(runtime)

    try:
        return asyncio.run(_main())
    except ConsoleError as exc:
        print_error(exc)
        raise typer.Exit(code=1) from exc
