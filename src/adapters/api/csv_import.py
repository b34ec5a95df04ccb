"""Importación masiva de organizaciones y carga de Stove IDs por CSV.

La validación local corre siempre antes de la red: un CSV inválido nunca
llega al backend.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Sequence

from pydantic import ValidationError

from adapters.api.base import EdgeFunctionClient, ensure_success
from core.domain.errors import CSVValidationError, ResponseFormatError
from core.domain.models import ImportResult, ImportSummary, ItemResult
from core.services.organization_csv import check_csv_path, load_csv_file, validate_rows

logger = logging.getLogger(__name__)


def _pick(payload: dict[str, Any], key: str) -> Any:
    data = payload.get("data")
    if isinstance(data, dict) and data.get(key):
        return data[key]
    return payload.get(key)


def normalize_import_response(payload: Any, total_rows: int) -> ImportResult:
    """Sobre de importación -> `ImportResult`.

    El resumen puede venir en `data.summary` o en `summary`; si falta se
    calcula a partir de las listas devueltas.
    """

    if not isinstance(payload, dict):
        raise ResponseFormatError(f"Unexpected response type: {type(payload).__name__}")
    ensure_success(payload)

    created = _pick(payload, "created") or []
    updated = _pick(payload, "updated") or []
    errors = _pick(payload, "errors") or []
    raw_summary = _pick(payload, "summary")

    if isinstance(raw_summary, dict):
        try:
            summary = ImportSummary.model_validate({k: v or 0 for k, v in raw_summary.items()})
        except ValidationError as exc:
            raise ResponseFormatError(f"Invalid import summary: {exc}") from exc
    else:
        summary = ImportSummary(
            total_rows=total_rows,
            organizations_created=len(created),
            organizations_updated=len(updated),
            errors_count=len(errors),
        )

    data = payload.get("data")
    message = payload.get("message") or (data.get("message") if isinstance(data, dict) else None)
    return ImportResult(
        summary=summary,
        created=[c for c in created if isinstance(c, dict)],
        updated=[u for u in updated if isinstance(u, dict)],
        errors=list(errors),
        message=message or "Import completed successfully",
    )


class OrganizationCSVImportAPI(EdgeFunctionClient):
    function_name = "manage-organizations"
    component_name = "OrganizationCSVImport"

    async def import_organizations(self, rows: Sequence[dict[str, str]]) -> ImportResult:
        errors = validate_rows(rows)
        if errors:
            raise CSVValidationError(errors)

        logger.info("Importing %d organizations", len(rows))
        payload = await self._fetch(
            self.url(params={"import_csv": True}),
            method="POST",
            json=list(rows),
            retry_count=0,
        )
        return normalize_import_response(payload, total_rows=len(rows))

    async def import_file(self, path: Path) -> ImportResult:
        rows = load_csv_file(path, max_bytes=self._settings.csv_max_bytes)
        return await self.import_organizations(rows)

    async def upload_stove_ids_csv(self, organization_id: str, path: Path) -> ItemResult:
        """Sube un CSV de Stove IDs para una organización (multipart)."""

        check_csv_path(path, max_bytes=self._settings.csv_max_bytes)
        content = path.read_bytes()
        payload = await self._fetch(
            f"{self._settings.functions_url}/upload-stove-ids-csv",
            method="POST",
            files={"csv_file": (path.name, content, "text/csv")},
            data={"organization_id": organization_id},
            retry_count=0,
        )
        if not isinstance(payload, dict):
            raise ResponseFormatError(f"Unexpected response type: {type(payload).__name__}")
        ensure_success(payload)
        return ItemResult(
            data=payload,
            message=payload.get("message") or "CSV import completed successfully",
        )
