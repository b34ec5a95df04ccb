"""Comandos de sesión: login, logout y estado del token."""

from __future__ import annotations

import typer
from rich.table import Table

from cli.runtime import Runtime, console, run_with_runtime

app = typer.Typer(no_args_is_help=True, help="Sign in, sign out and inspect the stored session.")


@app.command()
def login(
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email."),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True, help="Account password."),
) -> None:
    """Sign in with email and password and store the session."""

    async def _login(runtime: Runtime) -> None:
        token = await runtime.tokens.sign_in(email.strip(), password)
        user = token.user or {}
        console.print(f"[green]Signed in as[/green] {user.get('email') or email}")

    run_with_runtime(_login)


@app.command()
def logout() -> None:
    """Sign out and remove the stored session."""

    async def _logout(runtime: Runtime) -> None:
        await runtime.tokens.sign_out()
        console.print("[green]Signed out.[/green]")

    run_with_runtime(_logout)


@app.command()
def status() -> None:
    """Show the stored session and whether it needs a refresh."""

    async def _status(runtime: Runtime) -> None:
        info = runtime.tokens.token_info()
        if not info.get("has_token"):
            console.print("[yellow]No active session.[/yellow] Run `partner-console auth login`.")
            return

        table = Table(title="Session")
        table.add_column("Field", style="bright_green", no_wrap=True)
        table.add_column("Value", style="white")
        for key, value in info.items():
            table.add_row(key, str(value))
        console.print(table)

    run_with_runtime(_status)
