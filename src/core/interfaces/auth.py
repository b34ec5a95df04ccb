"""Contrato del proveedor de tokens.

Por qué Protocol:
- Safe Fetch y las vistas solo necesitan "dame un token válido o falla";
  el origen (GoTrue, un token fijo en tests) es intercambiable.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenProvider(Protocol):
    """Contrato mínimo para obtener un bearer token.

    Reglas de diseño:
    - `get_valid_token` devuelve un token no expirado o lanza `NoSessionError`;
      nunca devuelve un valor vacío.
    - Llamadas concurrentes durante un refresh observan un único refresh.
    """

    @property
    def is_authenticated(self) -> bool:
        """Hay una sesión almacenada (aunque pueda requerir refresh)."""

        ...

    async def get_valid_token(self) -> str:
        ...
