"""Lectura y validación local del CSV de importación de organizaciones.

Reglas del formato:
- La cabecera debe contener las 16 columnas de `REQUIRED_HEADERS`.
- Cada fila con contenido necesita `Partner ID` (clave de sincronización),
  `Customer`, `State` y `Branch`.
- Un `Partner ID` no puede repetirse dentro del mismo archivo.
- Las filas completamente vacías se ignoran.
- El archivo debe terminar en `.csv` y no superar el límite de tamaño.

Todas las violaciones se reúnen en una sola pasada y se lanzan juntas en
un `CSVValidationError`, antes de cualquier llamada de red.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from core.domain.errors import CSVValidationError

logger = logging.getLogger(__name__)

PARTNER_ID = "Partner ID"

REQUIRED_HEADERS: tuple[str, ...] = (
    "Sales Reference",
    "Sales Date",
    "Customer",
    "State",
    "Branch",
    "Quantity",
    "Downloaded by",
    "Stove IDs",
    "Sales Factory",
    "Sales Rep",
    PARTNER_ID,
    "Partner Address",
    "Partner Contact Person",
    "Partner Contact Phone",
    "Partner Alternative Phone",
    "Partner Email",
)

# Campo -> etiqueta usada en el mensaje de error.
ROW_REQUIRED_FIELDS: dict[str, str] = {
    PARTNER_ID: "Partner ID",
    "Customer": "Customer name",
    "State": "State",
    "Branch": "Branch",
}

TEMPLATE_SAMPLE_ROW: tuple[str, ...] = (
    "TR-4591A1",
    "9/18/2025",
    "LAPO MFB",
    "Cross River",
    "OBUBRA",
    "40",
    "ACSL Admin",
    "101034734, 101034900",
    "Asaba",
    "Ejiro Emeotu",
    "9CF111",
    "Mile 1 park by former first bank obubra",
    "ANIEFIOK UDO",
    "7046023589",
    "N/A",
    "N/A",
)

LARGE_IMPORT_ROWS = 1000


@dataclass
class ParsedCSV:
    headers: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)
    line_numbers: list[int] = field(default_factory=list)


def missing_headers(headers: Iterable[str]) -> list[str]:
    present = {h.strip() for h in headers}
    return [h for h in REQUIRED_HEADERS if h not in present]


def parse_csv_text(text: str) -> ParsedCSV:
    """Parsea el texto a filas-dict; no valida contenido."""

    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    headers: list[str] | None = None
    parsed = ParsedCSV(headers=[])

    for record in reader:
        values = [v.strip() for v in record]
        if headers is None:
            if any(values):
                headers = values
                parsed.headers = headers
            continue

        if not any(values):
            logger.debug("Skipping empty row %d", reader.line_num)
            continue
        row = {h: (values[i] if i < len(values) else "") for i, h in enumerate(headers)}
        parsed.rows.append(row)
        parsed.line_numbers.append(reader.line_num)

    return parsed


def duplicate_partner_ids(rows: Iterable[dict[str, str]]) -> list[str]:
    seen: set[str] = set()
    duplicates: list[str] = []
    for row in rows:
        partner_id = (row.get(PARTNER_ID) or "").strip()
        if not partner_id:
            continue
        if partner_id in seen and partner_id not in duplicates:
            duplicates.append(partner_id)
        seen.add(partner_id)
    return duplicates


def validate_rows(
    rows: Sequence[dict[str, str]],
    *,
    line_numbers: Sequence[int] | None = None,
    fields: Iterable[str] = ROW_REQUIRED_FIELDS,
) -> list[str]:
    """Devuelve todas las violaciones por fila más la de IDs duplicados."""

    errors: list[str] = []
    if not rows:
        return ["CSV file contains no valid data rows"]

    duplicates = duplicate_partner_ids(rows)
    if duplicates:
        errors.append(f"Duplicate Partner IDs found in CSV: {', '.join(duplicates)}")

    fields = list(fields)
    for index, row in enumerate(rows):
        row_number = line_numbers[index] if line_numbers else index + 1
        for name in fields:
            if not (row.get(name) or "").strip():
                errors.append(f"Row {row_number}: {ROW_REQUIRED_FIELDS.get(name, name)} is required")
    return errors


def validate_csv(parsed: ParsedCSV) -> list[str]:
    if not parsed.headers:
        return ["CSV file must contain at least a header row and one data row"]

    errors: list[str] = []
    missing = missing_headers(parsed.headers)
    if missing:
        errors.append(f"Missing required headers: {', '.join(missing)}")

    # Solo se validan por fila las columnas que existen en la cabecera.
    present = [name for name in ROW_REQUIRED_FIELDS if name in parsed.headers]
    errors.extend(validate_rows(parsed.rows, line_numbers=parsed.line_numbers, fields=present))
    return errors


def parse_and_validate(text: str) -> list[dict[str, str]]:
    parsed = parse_csv_text(text)
    errors = validate_csv(parsed)
    if errors:
        raise CSVValidationError(errors)
    if len(parsed.rows) > LARGE_IMPORT_ROWS:
        logger.warning(
            "Large dataset detected (%d rows). Consider splitting into smaller batches.",
            len(parsed.rows),
        )
    return parsed.rows


def check_csv_path(path: Path, *, max_bytes: int = 5 * 1024 * 1024) -> None:
    """Extensión, existencia y tamaño; lo común a toda subida de CSV."""

    if path.suffix.lower() != ".csv":
        raise CSVValidationError(["Please select a valid CSV file"])
    if not path.is_file():
        raise CSVValidationError([f"File not found: {path}"])

    size = path.stat().st_size
    if size > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise CSVValidationError(
            [f"File size exceeds {limit_mb}MB limit. Please split large imports into smaller batches."]
        )


def load_csv_file(path: Path, *, max_bytes: int = 5 * 1024 * 1024) -> list[dict[str, str]]:
    """Comprueba el archivo, lo lee y lo valida completo."""

    check_csv_path(path, max_bytes=max_bytes)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CSVValidationError([f"File is not valid UTF-8 text: {exc}"]) from exc
    return parse_and_validate(text)


def generate_template() -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(REQUIRED_HEADERS)
    writer.writerow(TEMPLATE_SAMPLE_ROW)
    return buffer.getvalue()


def write_template(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(generate_template(), encoding="utf-8")
    return path
