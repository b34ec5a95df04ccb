"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
- Los registros son del backend: los campos opcionales se muestran como
  "N/A" solo aquí, en la capa de presentación.
"""

from __future__ import annotations

from typing import Any, Iterable

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import ImportResult, PageInfo, Record, SalesStats, StateBucket, StoveStats
from core.services.sales_stats import sale_amount, sale_state

NA = "N/A"


def _cell(value: Any) -> str:
    if value is None or value == "":
        return NA
    return str(value)


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida.

    Por qué aquí:
    - Evita dependencias circulares (main <-> subcomandos).
    - Permite desactivar banner en modos no interactivos (JSON/pipelines).
    """

    title = Text("Partner Console", style="bold cyan")
    subtitle = Text("Organizations • Sales • Agents", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def pagination_caption(info: PageInfo) -> str:
    return f"Page {info.page} of {max(info.total_pages, 1)} • {info.total} total"


def build_organizations_table(rows: Iterable[Record], info: PageInfo | None = None) -> Table:
    table = Table(title="Organizations", caption=pagination_caption(info) if info else None)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Partner", style="cyan")
    table.add_column("Partner ID", style="white")
    table.add_column("State", style="green")
    table.add_column("Branch", style="green")
    table.add_column("Contact", style="white")
    table.add_column("Email", style="magenta")
    for org in rows:
        table.add_row(
            _cell(org.get("id")),
            _cell(org.get("partner_name") or org.get("name")),
            _cell(org.get("partner_id")),
            _cell(org.get("state")),
            _cell(org.get("branch")),
            _cell(org.get("contact_person")),
            _cell(org.get("email")),
        )
    return table


def build_record_panel(record: Record, title: str) -> Panel:
    body = Text()
    for key, value in record.items():
        body.append(f"{key}: ", style="bold")
        body.append(f"{_cell(value)}\n")
    return Panel(body, title=Text(title, style="bold cyan"), border_style="cyan")


def build_sales_table(rows: Iterable[Record], info: PageInfo | None = None) -> Table:
    table = Table(title="Sales", caption=pagination_caption(info) if info else None)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Date", style="white")
    table.add_column("Customer", style="cyan")
    table.add_column("Stove", style="white")
    table.add_column("State", style="green")
    table.add_column("Amount", style="yellow", justify="right")
    table.add_column("Status", style="magenta")
    for sale in rows:
        table.add_row(
            _cell(sale.get("id")),
            _cell(sale.get("sales_date") or sale.get("created_at")),
            _cell(sale.get("contact_person") or sale.get("end_user_name")),
            _cell(sale.get("stove_serial_no")),
            sale_state(sale),
            f"{sale_amount(sale):,.2f}",
            _cell(sale.get("status")),
        )
    return table


def build_agents_table(rows: Iterable[Record], info: PageInfo | None = None) -> Table:
    table = Table(title="Agents", caption=pagination_caption(info) if info else None)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Email", style="magenta")
    table.add_column("Phone", style="white")
    table.add_column("Created", style="dim")
    for agent in rows:
        table.add_row(
            _cell(agent.get("id")),
            _cell(agent.get("full_name")),
            _cell(agent.get("email")),
            _cell(agent.get("phone")),
            _cell(agent.get("created_at")),
        )
    return table


def build_stoves_table(
    rows: Iterable[Record],
    info: PageInfo | None = None,
    stats: StoveStats | None = None,
) -> Table:
    caption = pagination_caption(info) if info else None
    if stats is not None:
        summary = f"Available {stats.available} • Sold {stats.sold} • Total {stats.total}"
        caption = f"{caption}\n{summary}" if caption else summary
    table = Table(title="Stove IDs", caption=caption)
    table.add_column("Stove ID", style="cyan", no_wrap=True)
    table.add_column("Organization", style="white")
    table.add_column("Branch", style="green")
    table.add_column("Location", style="green")
    table.add_column("Status", style="magenta")
    for stove in rows:
        table.add_row(
            _cell(stove.get("stove_id")),
            _cell(stove.get("organization_name")),
            _cell(stove.get("branch")),
            _cell(stove.get("location") or stove.get("state")),
            _cell(stove.get("status")),
        )
    return table


def build_heatmap_table(buckets: Iterable[StateBucket]) -> Table:
    buckets = list(buckets)
    table = Table(title="Sales by State")
    table.add_column("State", style="cyan")
    table.add_column("Sales", justify="right")
    table.add_column("Amount", style="yellow", justify="right")
    table.add_column("", style="green")

    peak = max((b.count for b in buckets), default=0)
    for bucket in buckets:
        width = round(20 * bucket.count / peak) if peak else 0
        table.add_row(bucket.name, str(bucket.count), f"{bucket.amount:,.2f}", "█" * width)
    return table


def build_stats_panel(stats: SalesStats) -> Panel:
    body = Text()
    body.append(f"Total sales: {stats.total_sales}\n", style="bold")
    body.append(f"Total amount: {stats.total_amount:,.2f}\n")
    body.append(f"Customers: {stats.total_customers}\n")
    body.append(f"Average sale: {stats.avg_sale_amount:,.2f}\n")
    if stats.top_states:
        body.append("\nTop states:\n", style="bold")
        for b in stats.top_states:
            body.append(f"- {b.name}: {b.amount:,.2f} ({b.count})\n")
    if stats.top_products:
        body.append("\nTop products:\n", style="bold")
        for b in stats.top_products:
            body.append(f"- {b.name}: {b.count}\n")
    return Panel(body, title=Text("Sales Statistics", style="bold yellow"), border_style="yellow")


def build_import_panel(result: ImportResult) -> Panel:
    summary = result.summary
    body = Text()
    body.append(result.message + "\n\n")
    body.append(f"Rows: {summary.total_rows}\n")
    body.append(f"Created: {summary.organizations_created}\n", style="green")
    body.append(f"Updated: {summary.organizations_updated}\n", style="cyan")
    body.append(f"Errors: {summary.errors_count}\n", style="red" if summary.errors_count else "dim")
    for error in result.errors[:10]:
        body.append(f"- {error}\n", style="red")
    border = "red" if summary.errors_count else "green"
    return Panel(body, title=Text("CSV Import", style="bold"), border_style=border)
