"""Taxonomía de errores de la consola.

Los errores se clasifican una única vez en el borde de Safe Fetch (por
status HTTP o por la naturaleza del fallo). Las capas superiores leen
`kind` y nunca vuelven a inspeccionar el texto del mensaje.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    AUTH = "auth"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    SERVER = "server"
    CANCELLED = "cancelled"
    VALIDATION = "validation"
    REQUEST = "request"


class ConsoleError(Exception):
    """Base de todos los errores que la consola sabe presentar."""

    kind: ErrorKind = ErrorKind.REQUEST

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthError(ConsoleError):
    """Token ausente, expirado o rechazado (HTTP 401). Nunca se reintenta."""

    kind = ErrorKind.AUTH


class NoSessionError(AuthError):
    """El proveedor de tokens no tiene una sesión recuperable."""


class PermissionDeniedError(ConsoleError):
    """Autenticado pero sin privilegios suficientes (HTTP 403)."""

    kind = ErrorKind.PERMISSION


class RequestCancelledError(ConsoleError):
    """Request abortada por timeout, cierre de la vista o cancelación manual."""

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Request was cancelled", *, reason: str = "cancelled") -> None:
        super().__init__(message)
        self.reason = reason


class RequestError(ConsoleError):
    """Cualquier respuesta no-2xx sin categoría más específica, o fallo de red."""

    kind = ErrorKind.REQUEST


class NotFoundError(RequestError):
    kind = ErrorKind.NOT_FOUND


class ServerError(RequestError):
    kind = ErrorKind.SERVER


class ResponseFormatError(RequestError):
    """El backend respondió 2xx pero con un sobre que no sabemos interpretar."""


class CSVValidationError(ConsoleError):
    """Validación local previa a la importación; enumera todas las violaciones."""

    kind = ErrorKind.VALIDATION

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("CSV validation failed:\n" + "\n".join(self.errors))
