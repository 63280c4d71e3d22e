"""
Application error types.

Each error carries the client-facing error code the mobile app switches on
(UNAUTHENTICATED, FORBIDDEN, BAD_USER_INPUT, NOT_FOUND, INTERNAL_SERVER_ERROR)
and the HTTP status used by the global exception handlers in arreglame_api.api.main.
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

UNAUTHENTICATED = "UNAUTHENTICATED"
FORBIDDEN = "FORBIDDEN"
BAD_USER_INPUT = "BAD_USER_INPUT"
NOT_FOUND = "NOT_FOUND"
INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"

# Title/description pairs shown to the user for each code
TOAST_MESSAGES: Dict[str, Tuple[str, str]] = {
    UNAUTHENTICATED: ("Sesión expirada", "Por favor, inicia sesión nuevamente"),
    FORBIDDEN: ("Acceso denegado", "No tienes permisos para realizar esta acción"),
    BAD_USER_INPUT: ("Error de validación", "Los datos ingresados no son válidos."),
    NOT_FOUND: ("No encontrado", "El recurso solicitado no existe"),
    INTERNAL_SERVER_ERROR: (
        "Error del servidor",
        "Ocurrió un error inesperado. Por favor, intenta nuevamente.",
    ),
}

_HUMANIZED_PATTERNS: Dict[str, str] = {
    "jwt expired": "Tu sesión ha expirado. Por favor, inicia sesión nuevamente.",
    "jwt malformed": "Tu sesión es inválida. Por favor, inicia sesión nuevamente.",
    "invalid token": "Tu sesión es inválida. Por favor, inicia sesión nuevamente.",
    "not authenticated": "Debes iniciar sesión para realizar esta acción.",
    "validation failed": "Los datos ingresados no son válidos.",
    "duplicate key": "Este registro ya existe.",
    "foreign key": "No se puede realizar esta operación debido a dependencias.",
    "network request failed": "No se pudo conectar con el servidor. Verifica tu conexión.",
}

_PREFIXES = ("error:", "graphql error:", "network error:")


# PUBLIC_INTERFACE
def humanize_error_message(message: str) -> str:
    """
    Normalize a technical error message into user-facing language.

    Technical prefixes are stripped; known patterns are replaced with a fixed
    Spanish message. Unknown messages are returned cleaned but otherwise as-is.
    """
    cleaned = message.strip()
    stripped = True
    while stripped:
        stripped = False
        for prefix in _PREFIXES:
            if cleaned.lower().startswith(prefix):
                cleaned = cleaned[len(prefix):].lstrip()
                stripped = True

    lower = cleaned.lower()
    for pattern, human in _HUMANIZED_PATTERNS.items():
        if pattern in lower:
            return human
    return cleaned


def code_for_status(status_code: int) -> str:
    """Map an HTTP status to the closest client-facing error code."""
    if status_code == 401:
        return UNAUTHENTICATED
    if status_code == 403:
        return FORBIDDEN
    if status_code == 404:
        return NOT_FOUND
    if 400 <= status_code < 500:
        return BAD_USER_INPUT
    return INTERNAL_SERVER_ERROR


class AppError(Exception):
    """Base class for errors surfaced to API clients."""

    code: str = INTERNAL_SERVER_ERROR
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class UnauthenticatedError(AppError):
    code = UNAUTHENTICATED
    status_code = 401


class ForbiddenError(AppError):
    code = FORBIDDEN
    status_code = 403


class BadUserInputError(AppError):
    code = BAD_USER_INPUT
    status_code = 400


class ConflictError(BadUserInputError):
    """Duplicate records and optimistic-lock conflicts."""

    status_code = 409


class NotFoundError(AppError):
    code = NOT_FOUND
    status_code = 404

