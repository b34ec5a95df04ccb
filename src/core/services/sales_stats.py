"""Agregados sobre ventas ya descargadas.

Sirve a las tarjetas de estadísticas y a la vista geográfica (mapa de calor
por estado). Las ventas son dicts tal como las devuelve el backend.
"""

from __future__ import annotations

from typing import Any, Iterable

from core.domain.models import SalesStats, StateBucket

UNKNOWN = "Unknown"


def sale_amount(sale: dict[str, Any]) -> float:
    try:
        return float(sale.get("amount") or 0)
    except (TypeError, ValueError):
        return 0.0


def sale_state(sale: dict[str, Any]) -> str:
    state = sale.get("state_backup")
    if not state:
        address = sale.get("address")
        if isinstance(address, dict):
            state = address.get("state")
    return str(state).strip() if state else UNKNOWN


def sale_product(sale: dict[str, Any]) -> str:
    serial = sale.get("stove_serial_no")
    return str(serial)[:3] if serial else UNKNOWN


def _group(sales: Iterable[dict[str, Any]], key) -> list[StateBucket]:
    buckets: dict[str, StateBucket] = {}
    for sale in sales:
        name = key(sale)
        bucket = buckets.setdefault(name, StateBucket(name=name))
        bucket.count += 1
        bucket.amount += sale_amount(sale)
    return list(buckets.values())


def state_heatmap(sales: Iterable[dict[str, Any]]) -> list[StateBucket]:
    """Ventas por estado, de mayor a menor número de ventas."""

    return sorted(_group(sales, sale_state), key=lambda b: (-b.count, b.name))


def calculate_stats(sales: list[dict[str, Any]], *, top: int = 5) -> SalesStats:
    total_amount = sum(sale_amount(s) for s in sales)
    customers = {s.get("contact_person") for s in sales}
    return SalesStats(
        total_sales=len(sales),
        total_amount=total_amount,
        total_customers=len(customers),
        avg_sale_amount=total_amount / len(sales) if sales else 0.0,
        top_states=sorted(_group(sales, sale_state), key=lambda b: -b.amount)[:top],
        top_products=sorted(_group(sales, sale_product), key=lambda b: -b.count)[:top],
    )
