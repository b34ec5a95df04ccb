"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Los registros (organizaciones, ventas, agentes) son propiedad del backend;
  aquí solo fijamos la forma de los *sobres* que la consola consume.
- Validar en el borde evita cadenas de fallbacks repartidas por la UI.

Nota:
- Estos modelos describen *qué* es la información, no *cómo* se obtiene.
"""

from __future__ import annotations

import math
import time
from typing import Any

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

Record = dict[str, Any]


class Pagination(BaseModel):
    """Paginación tal como la devuelven los endpoints de listado."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    limit: int = Field(default=50, ge=0)
    offset: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    total_pages: int | None = Field(
        default=None,
        ge=0,
        alias="totalPages",
        description="Algunos endpoints lo incluyen; si falta se deriva de total/limit.",
    )
    page: int | None = Field(default=None, ge=1)

    def page_info(self) -> PageInfo:
        """Convierte offset/limit del backend a la paginación por página de la UI."""

        limit = self.limit or 10
        page = self.page or (self.offset // limit) + 1
        total_pages = self.total_pages if self.total_pages is not None else math.ceil(self.total / limit)
        return PageInfo(page=page, limit=limit, total=self.total, total_pages=total_pages)


class PageInfo(BaseModel):
    """Paginación que presentan las vistas (página 1-based)."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)
    total: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)


class ListResult(BaseModel):
    """Forma estable de cualquier listado, independientemente del sobre que use el backend."""

    success: bool = True
    data: list[Record] = Field(default_factory=list)
    pagination: Pagination
    message: str | None = None


class ItemResult(BaseModel):
    """Resultado de operaciones sobre un único registro (get/create/update/delete)."""

    success: bool = True
    data: Record | None = None
    message: str | None = None
    warnings: list[str] = Field(default_factory=list)


class ImportSummary(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total_rows: int = Field(default=0, ge=0)
    organizations_created: int = Field(default=0, ge=0)
    organizations_updated: int = Field(default=0, ge=0)
    errors_count: int = Field(default=0, ge=0)


class ImportResult(BaseModel):
    """Resultado normalizado de la importación masiva de organizaciones."""

    summary: ImportSummary
    created: list[Record] = Field(default_factory=list)
    updated: list[Record] = Field(default_factory=list)
    errors: list[Any] = Field(default_factory=list)
    message: str = "Import completed successfully"


class StateBucket(BaseModel):
    """Agregado por estado/región: base de la vista de mapa de calor."""

    name: str
    count: int = 0
    amount: float = 0.0


class SalesStats(BaseModel):
    total_sales: int = 0
    total_amount: float = 0.0
    total_customers: int = 0
    avg_sale_amount: float = 0.0
    top_states: list[StateBucket] = Field(default_factory=list)
    top_products: list[StateBucket] = Field(default_factory=list)


class StoveStats(BaseModel):
    """Inventario de estufas: disponibles, vendidas y total."""

    model_config = ConfigDict(extra="ignore")

    available: int = Field(default=0, ge=0)
    sold: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)


class TokenData(BaseModel):
    """Sesión persistida por el token manager.

    `expires_at` está en segundos epoch (formato GoTrue); `created_at` es el
    instante local en que se guardó.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    expires_at: float = Field(..., gt=0)
    created_at: float = Field(default_factory=time.time)
    user: Record | None = None
