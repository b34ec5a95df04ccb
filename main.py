"""Arranque de la consola desde un checkout sin instalar.

Uso: `python main.py orgs list` (equivale al script `partner-console`).
Los paquetes `core`, `adapters` y `cli` viven bajo `src/`; este archivo los
pone en `sys.path` antes de delegar en `cli.main.run`.
"""

from __future__ import annotations

import sys
from pathlib import Path

SRC_DIR = Path(__file__).resolve().parent / "src"


def main() -> None:
    if str(SRC_DIR) not in sys.path:
        sys.path.insert(0, str(SRC_DIR))

    from cli.main import run  # noqa: PLC0415

    run()


if __name__ == "__main__":
    main()
