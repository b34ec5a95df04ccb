"""Escritura de exportaciones (CSV/JSON como texto, XLSX como binario)."""

from __future__ import annotations

from pathlib import Path

from cli.runtime import console


def write_export(content: str | bytes, output: Path | None) -> None:
    if output is None:
        if isinstance(content, bytes):
            raise ValueError("Binary exports need --output")
        console.print(content, markup=False, highlight=False)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        output.write_bytes(content)
    else:
        output.write_text(content, encoding="utf-8")
    console.print(f"[green]Saved export to:[/green] {output}")
