"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP/auth) lean config de forma consistente.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_DIR_NAME = "partner-console"


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / APP_DIR_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_DIR_NAME
    return Path.home() / ".config" / APP_DIR_NAME


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# Partner Console user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Todas las piezas (token manager, safe fetch, view models, CLI) reciben
    una instancia; ningún módulo lee variables de entorno por su cuenta.
    """

    model_config = SettingsConfigDict(
        env_prefix="PARTNER_CONSOLE_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    supabase_url: str = Field(
        default="http://localhost:54321",
        min_length=8,
        description="Base URL del proyecto Supabase (auth + edge functions).",
    )
    supabase_anon_key: str = Field(
        default="",
        description="Clave pública (anon) enviada como header `apikey` a GoTrue.",
    )

    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout de reloj por request antes de cancelarla.",
    )
    retry_count: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Reintentos por defecto ante fallos no relacionados con auth/permisos.",
    )
    retry_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Espera fija entre reintentos (segundos).",
    )
    stale_request_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Edad a partir de la cual una request rastreada se considera colgada.",
    )

    token_refresh_threshold_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Refrescar el token si expira dentro de este margen.",
    )
    token_refresh_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Tiempo máximo para una operación de refresh contra GoTrue.",
    )
    session_file: Path | None = Field(
        default=None,
        description="Ruta alternativa para persistir la sesión (por defecto en el config dir).",
    )

    csv_max_bytes: int = Field(
        default=5 * 1024 * 1024,
        gt=0,
        description="Tamaño máximo aceptado para un CSV de importación.",
    )
    filter_debounce_seconds: float = Field(
        default=0.3,
        ge=0,
        description="Debounce (trailing) al aplicar filtros desde la UI.",
    )

    log_level: str = Field(
        default="WARNING",
        description="Nivel de logging de la consola (DEBUG, INFO, WARNING...).",
    )

    @property
    def functions_url(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/functions/v1"

    @property
    def auth_url(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/auth/v1"

    def resolved_session_file(self) -> Path:
        return self.session_file or (get_user_config_dir() / "session.json")
