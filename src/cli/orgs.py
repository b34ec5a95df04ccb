"""Comandos de organizaciones (partners): listado, detalle, export, import CSV y estufas."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from adapters.api.stoves import STOVE_STATUSES
from cli.output import write_export
from cli.runtime import Runtime, console, run_with_runtime
from cli.ui_components import (
    build_import_panel,
    build_organizations_table,
    build_record_panel,
    build_stoves_table,
)
from core.services.organization_csv import REQUIRED_HEADERS, load_csv_file, write_template
from core.services.view_models import FetchStatus, OrganizationsViewModel

app = typer.Typer(no_args_is_help=True, help="List, export and bulk-import organizations.")


@app.command("list")
def list_organizations(
    search: str = typer.Option("", "--search", "-s", help="Free-text search."),
    page: int = typer.Option(1, "--page", min=1),
    limit: int = typer.Option(10, "--limit", min=1, max=500),
    sort_by: str = typer.Option("created_at", "--sort-by"),
    sort_order: str = typer.Option("desc", "--sort-order"),
) -> None:
    """List organizations, one page at a time."""

    async def _list(runtime: Runtime) -> None:
        async with OrganizationsViewModel(
            runtime.organizations, runtime.tokens, runtime.tracker, **runtime.view_model_options()
        ) as vm:
            await vm.fetch(
                {"search": search, "page": page, "limit": limit, "sortBy": sort_by, "sortOrder": sort_order},
                initial=True,
            )
            if vm.state.status is FetchStatus.ERROR:
                console.print(f"[red]{vm.state.error}[/red]")
                raise typer.Exit(code=1)
            console.print(build_organizations_table(vm.state.data, vm.state.pagination))

    run_with_runtime(_list)


@app.command()
def show(organization_id: str = typer.Argument(..., help="Organization id.")) -> None:
    """Show a single organization."""

    async def _show(runtime: Runtime) -> None:
        result = await runtime.organizations.get_organization(organization_id)
        if result.data is None:
            console.print("[yellow]Organization not found.[/yellow]")
            raise typer.Exit(code=1)
        console.print(build_record_panel(result.data, "Organization"))

    run_with_runtime(_show)


@app.command()
def export(
    fmt: str = typer.Option("csv", "--format", "-f", help="csv, xlsx or json."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Destination file."),
    search: str = typer.Option("", "--search", "-s"),
) -> None:
    """Export organizations matching the current filters."""

    if fmt == "xlsx" and output is None:
        raise typer.BadParameter("xlsx exports need --output")

    async def _export(runtime: Runtime) -> None:
        content = await runtime.organizations.export_organizations({"search": search}, fmt)
        write_export(content, output)

    run_with_runtime(_export)


@app.command("import")
def import_csv(
    path: Path = typer.Argument(..., help="CSV file to import."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate only, do not upload."),
) -> None:
    """Validate a CSV file locally and import its organizations."""

    async def _import(runtime: Runtime) -> None:
        if dry_run:
            rows = load_csv_file(path, max_bytes=runtime.settings.csv_max_bytes)
            console.print(f"[green]{len(rows)} row(s) are valid.[/green]")
            return
        with console.status(f"Importing {path.name}..."):
            result = await runtime.csv_import.import_file(path)
        console.print(build_import_panel(result))

    run_with_runtime(_import)


@app.command("upload-stove-ids")
def upload_stove_ids(
    organization_id: str = typer.Argument(..., help="Organization id."),
    path: Path = typer.Argument(..., help="CSV with stove ids."),
) -> None:
    """Upload a stove-id CSV for one organization."""

    async def _upload(runtime: Runtime) -> None:
        result = await runtime.csv_import.upload_stove_ids_csv(organization_id, path)
        console.print(f"[green]{result.message}[/green]")

    run_with_runtime(_upload)


@app.command()
def stoves(
    organization_ids: Optional[List[str]] = typer.Argument(None, help="Organization ids (default: all visible)."),
    status: Optional[str] = typer.Option(None, "--status", help="available or sold."),
    stove_id: Optional[str] = typer.Option(None, "--stove-id", help="Filter by stove id."),
    page: int = typer.Option(1, "--page", min=1),
    page_size: int = typer.Option(25, "--page-size", min=1, max=500),
) -> None:
    """List stove ids with inventory totals."""

    if status is not None and status not in STOVE_STATUSES:
        raise typer.BadParameter("status must be available or sold")

    async def _stoves(runtime: Runtime) -> None:
        ids = organization_ids or []
        result = await runtime.stoves.list_stove_ids(
            ids, page=page, page_size=page_size, stove_id=stove_id, status=status
        )
        totals = await runtime.stoves.stove_stats(ids)
        console.print(build_stoves_table(result.data, result.pagination.page_info(), totals))

    run_with_runtime(_stoves)


@app.command()
def stove(stove_id: str = typer.Argument(..., help="Stove record id.")) -> None:
    """Show a single stove record."""

    async def _stove(runtime: Runtime) -> None:
        result = await runtime.stoves.get_stove(stove_id)
        if result.data is None:
            console.print("[yellow]Stove not found.[/yellow]")
            raise typer.Exit(code=1)
        console.print(build_record_panel(result.data, "Stove"))

    run_with_runtime(_stove)


@app.command()
def template(
    output: Path = typer.Option(Path("organization_import_template.csv"), "--output", "-o"),
) -> None:
    """Write an import template with the required headers and a sample row."""

    write_template(output)
    console.print(f"[green]Template saved to:[/green] {output} ({len(REQUIRED_HEADERS)} columns)")
