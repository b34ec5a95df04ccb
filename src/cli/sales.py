"""Comandos de ventas: listado filtrado, detalle, estadísticas, mapa por estado y export."""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

import typer

from adapters.api.sales import SALE_LOOKUPS
from cli.output import write_export
from cli.runtime import Runtime, console, run_with_runtime
from cli.ui_components import build_heatmap_table, build_record_panel, build_sales_table, build_stats_panel
from core.services.sales_stats import state_heatmap
from core.services.view_models import FetchStatus, SalesAdvancedViewModel

app = typer.Typer(no_args_is_help=True, help="Browse, summarise and export sales.")


def _filters(
    search: str,
    states: list[str] | None,
    date_from: str | None,
    date_to: str | None,
    amount_min: float | None,
    amount_max: float | None,
) -> dict[str, Any]:
    return {
        "search": search.strip(),
        "states": list(states or []),
        "dateFrom": date_from,
        "dateTo": date_to,
        "amountMin": amount_min,
        "amountMax": amount_max,
    }


_SEARCH = typer.Option("", "--search", "-s", help="Free-text search.")
_STATES = typer.Option(None, "--state", help="Filter by state (repeatable).")
_DATE_FROM = typer.Option(None, "--from", help="Start date (YYYY-MM-DD).")
_DATE_TO = typer.Option(None, "--to", help="End date (YYYY-MM-DD).")
_AMOUNT_MIN = typer.Option(None, "--amount-min")
_AMOUNT_MAX = typer.Option(None, "--amount-max")


@app.command("list")
def list_sales(
    search: str = _SEARCH,
    states: Optional[List[str]] = _STATES,
    date_from: Optional[str] = _DATE_FROM,
    date_to: Optional[str] = _DATE_TO,
    amount_min: Optional[float] = _AMOUNT_MIN,
    amount_max: Optional[float] = _AMOUNT_MAX,
    page: int = typer.Option(1, "--page", min=1),
    limit: int = typer.Option(100, "--limit", min=1, max=1000),
) -> None:
    """List sales with advanced filters."""

    async def _list(runtime: Runtime) -> None:
        async with SalesAdvancedViewModel(
            runtime.sales, runtime.tokens, runtime.tracker, **runtime.view_model_options()
        ) as vm:
            filters = _filters(search, states, date_from, date_to, amount_min, amount_max)
            await vm.fetch({**filters, "page": page, "limit": limit}, initial=True)
            if vm.state.status is FetchStatus.ERROR:
                console.print(f"[red]{vm.state.error}[/red]")
                raise typer.Exit(code=1)
            console.print(build_sales_table(vm.state.data, vm.state.pagination))

    run_with_runtime(_list)


@app.command()
def show(
    value: str = typer.Argument(..., help="Sale id, transaction id or stove serial number."),
    by: str = typer.Option("id", "--by", help="id, transaction_id or stove_serial_no."),
) -> None:
    """Show a single sale."""

    if by not in SALE_LOOKUPS:
        raise typer.BadParameter(f"--by must be one of: {', '.join(SALE_LOOKUPS)}")

    async def _show(runtime: Runtime) -> None:
        result = await runtime.sales.get_sale(value, by=by)
        if result.data is None:
            console.print("[yellow]Sale not found.[/yellow]")
            raise typer.Exit(code=1)
        console.print(build_record_panel(result.data, "Sale"))

    run_with_runtime(_show)


@app.command()
def stats(
    search: str = _SEARCH,
    states: Optional[List[str]] = _STATES,
    date_from: Optional[str] = _DATE_FROM,
    date_to: Optional[str] = _DATE_TO,
) -> None:
    """Show totals, averages and top states/products."""

    async def _stats(runtime: Runtime) -> None:
        result = await runtime.sales.stats(_filters(search, states, date_from, date_to, None, None))
        console.print(build_stats_panel(result))

    run_with_runtime(_stats)


@app.command()
def heatmap(
    date_from: Optional[str] = _DATE_FROM,
    date_to: Optional[str] = _DATE_TO,
    limit: int = typer.Option(1000, "--limit", min=1),
) -> None:
    """Show sales per state."""

    async def _heatmap(runtime: Runtime) -> None:
        filters = _filters("", None, date_from, date_to, None, None)
        result = await runtime.sales.list_sales({**filters, "limit": limit, "includeAddress": True})
        console.print(build_heatmap_table(state_heatmap(result.data)))

    run_with_runtime(_heatmap)


@app.command()
def export(
    fmt: str = typer.Option("csv", "--format", "-f", help="csv, xlsx or json."),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
    fields: Optional[List[str]] = typer.Option(None, "--field", help="Export only these fields (repeatable)."),
    search: str = _SEARCH,
    states: Optional[List[str]] = _STATES,
    date_from: Optional[str] = _DATE_FROM,
    date_to: Optional[str] = _DATE_TO,
) -> None:
    """Export sales matching the filters."""

    if fmt == "xlsx" and output is None:
        raise typer.BadParameter("xlsx exports need --output")

    async def _export(runtime: Runtime) -> None:
        filters = {
            k: v
            for k, v in _filters(search, states, date_from, date_to, None, None).items()
            if v not in (None, "", [])
        }
        content = await runtime.sales.export_sales(filters, fmt, fields or ())
        write_export(content, output)

    run_with_runtime(_export)
