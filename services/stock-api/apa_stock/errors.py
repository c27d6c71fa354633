"""Utilities for consistent API error responses and the ledger error kinds."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import HTTPException, status


def api_error(status_code: int, code: str, detail: str, *, headers: dict[str, str] | None = None) -> HTTPException:
    """Create an :class:`HTTPException` with a normalized payload."""

    payload = {"code": code, "detail": detail}
    return HTTPException(status_code=status_code, detail=payload, headers=headers)


class LedgerError(Exception):
    """Base class for failures surfaced by the stock ledger.

    Subclasses carry a machine readable ``code`` and the HTTP status the API
    maps them to. ``payload()`` is what the exception handler renders.
    """

    code = "ledger.error"
    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def payload(self) -> dict[str, Any]:
        return {"detail": self.detail, "code": self.code}


class LedgerValidationError(LedgerError):
    code = "ledger.validation_error"
    status_code = 422


class PermissionDenied(LedgerError):
    code = "auth.forbidden"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, detail: str = "Permisos insuficientes") -> None:
        super().__init__(detail)


class EntryNotFound(LedgerError):
    code = "entry.not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entry_id: uuid.UUID | str) -> None:
        super().__init__("Entrada no encontrada")
        self.entry_id = entry_id


class MovementNotFound(LedgerError):
    code = "movement.not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, movement_id: uuid.UUID | str) -> None:
        super().__init__("Movimiento no encontrado")
        self.movement_id = movement_id


class InsufficientStock(LedgerError):
    code = "entry.insufficient_stock"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, *, requested: int, available: int) -> None:
        super().__init__("Cantidad supera disponible de la entrada")
        self.requested = requested
        self.available = available

    def payload(self) -> dict[str, Any]:
        return {**super().payload(), "requested": self.requested, "available": self.available}


class EntryHasDependents(LedgerError):
    code = "entry.has_dependents"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, *, assignments: int, scrap: int) -> None:
        super().__init__("La entrada tiene asignaciones o mermas asociadas")
        self.assignments = assignments
        self.scrap = scrap

    @property
    def total(self) -> int:
        return self.assignments + self.scrap

    def payload(self) -> dict[str, Any]:
        return {
            **super().payload(),
            "dependents": {"assignments": self.assignments, "scrap": self.scrap},
        }


class TransactionAborted(LedgerError):
    """The store could not commit after the bounded number of attempts."""

    code = "ledger.transaction_aborted"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True

    def __init__(self, *, attempts: int) -> None:
        super().__init__("No se pudo completar la operación, intenta nuevamente")
        self.attempts = attempts
