"""CLI principal (Typer).

Por qué Typer + Rich:
- Subcomandos por área (auth, orgs, sales, agents, doctor) sin boilerplate.
- Salida legible en terminal; los errores tipados salen con código 1.
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from cli import agents, auth, doctor, orgs, sales
from cli.runtime import console
from cli.ui_components import print_banner
from core.config import AppSettings

app = typer.Typer(
    name="partner-console",
    help="Partner and sales dashboard for the terminal.",
    add_completion=False,
    no_args_is_help=True,
)
app.add_typer(auth.app, name="auth")
app.add_typer(orgs.app, name="orgs")
app.add_typer(sales.app, name="sales")
app.add_typer(agents.app, name="agents")
app.add_typer(doctor.app, name="doctor")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx registra cada request en INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    banner: bool = typer.Option(False, "--banner", help="Print the welcome banner."),
) -> None:
    settings = AppSettings()
    configure_logging("DEBUG" if verbose else settings.log_level)
    if banner:
        print_banner(console)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
