"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import build_async_client
from adapters.session_store import TokenStore
from core.config import AppSettings, get_user_env_file, write_user_env_vars

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_http(settings: AppSettings) -> tuple[bool, str]:
    # GoTrue expone /health sin sesión; basta con la anon key.
    try:
        async with build_async_client(settings) as client:
            response = await client.get(f"{settings.auth_url}/health")
        return response.is_success, f"HTTP {response.status_code}"
    except Exception as exc:
        return False, str(exc)


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="Partner Console Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    table.add_row("Supabase URL", "OK", settings.supabase_url)
    if settings.supabase_anon_key:
        table.add_row("Anon key", "OK", "Set")
    else:
        table.add_row("Anon key", "MISSING", "Run `partner-console doctor setup`")
    table.add_row("User config", "OK", str(get_user_env_file()))

    # Connectivity (best-effort)
    ok_http, detail_http = asyncio.run(_check_http(settings))
    table.add_row("Auth service", "OK" if ok_http else "FAIL", detail_http)

    # Session
    session_file = settings.resolved_session_file()
    token = TokenStore(session_file).load()
    if token is None:
        table.add_row("Session", "NONE", "Run `partner-console auth login`")
    else:
        email = (token.user or {}).get("email") or "unknown user"
        table.add_row("Session", "OK", f"{email} ({session_file})")

    _console.print(table)

    if not ok_http:
        _console.print(
            "\n[yellow]Note:[/yellow] The auth service is unreachable; check PARTNER_CONSOLE_SUPABASE_URL."
        )


@app.command()
def setup() -> None:
    """Interactive backend setup (stores config in the user config .env)."""

    current = AppSettings()
    url = typer.prompt("Supabase URL", default=current.supabase_url, show_default=True).strip()
    anon_key = typer.prompt("Supabase anon key", hide_input=True, confirmation_prompt=False).strip()

    if not url or not anon_key:
        raise typer.BadParameter("url and anon key are required")

    env_path = write_user_env_vars(
        {
            "PARTNER_CONSOLE_SUPABASE_URL": url,
            "PARTNER_CONSOLE_SUPABASE_ANON_KEY": anon_key,
        }
    )

    _console.print(f"[green]Saved backend config to:[/green] {env_path}")
