"""Comandos de agentes de ventas y del flujo de aprobación de ventas (SAA)."""

from __future__ import annotations

import typer

from cli.runtime import Runtime, console, run_with_runtime
from cli.ui_components import build_agents_table, build_record_panel

app = typer.Typer(no_args_is_help=True, help="Manage sales agents and approve sales.")


@app.command("list")
def list_agents(
    search: str = typer.Option("", "--search", "-s"),
    page: int = typer.Option(1, "--page", min=1),
    limit: int = typer.Option(10, "--limit", min=1, max=500),
    super_admin: bool = typer.Option(False, "--super-admin", help="List super admin agents instead."),
) -> None:
    """List sales agents (or super admin agents)."""

    async def _list(runtime: Runtime) -> None:
        if super_admin:
            result = await runtime.super_admin_agents.list_agents(
                {"search": search, "limit": limit, "offset": (page - 1) * limit}
            )
        else:
            result = await runtime.agents.list_agents(page=page, limit=limit, search=search)
        console.print(build_agents_table(result.data, result.pagination.page_info()))

    run_with_runtime(_list)


@app.command()
def approve(sale_id: str = typer.Argument(..., help="Sale id to approve.")) -> None:
    """Approve a sale as a super admin agent."""

    async def _approve(runtime: Runtime) -> None:
        result = await runtime.super_admin_agents.approve_sale(sale_id)
        console.print(f"[green]{result.message or 'Sale approved.'}[/green]")
        if result.data:
            console.print(build_record_panel(result.data, "Sale"))

    run_with_runtime(_approve)


@app.command()
def dashboard() -> None:
    """Show the super admin agent dashboard figures."""

    async def _dashboard(runtime: Runtime) -> None:
        result = await runtime.super_admin_agents.dashboard_stats()
        console.print(build_record_panel(result.data or {}, "Dashboard"))

    run_with_runtime(_dashboard)
