"""Persistencia local de la sesión (equivalente al localStorage del navegador).

El JSON vive en el directorio de configuración del usuario con permisos
restringidos; si está corrupto se descarta en vez de romper el arranque.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from core.domain.models import TokenData

logger = logging.getLogger(__name__)


class TokenStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> TokenData | None:
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return TokenData.model_validate(raw)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Discarding unreadable session file %s: %s", self.path, exc)
            self.clear()
            return None

    def save(self, token: TokenData) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(token.model_dump(mode="json"), ensure_ascii=False, indent=2) + "\n",
            encoding="utf-8",
        )
        if os.name == "posix":
            self.path.chmod(0o600)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class MemoryTokenStore(TokenStore):
    """Store sin disco (tests, sesiones efímeras)."""

    def __init__(self, token: TokenData | None = None) -> None:
        super().__init__(Path(":memory:"))
        self._token = token

    def load(self) -> TokenData | None:
        return self._token

    def save(self, token: TokenData) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None
