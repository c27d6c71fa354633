"""Stock ledger: keeps ``quantity_available`` consistent with movements.

For every stock entry ``quantity_available + sum(movement quantities)``
equals ``quantity_received``. The counter only changes inside
:func:`store.run_transaction`, together with the insert or delete of the
movement that explains the change.
"""

from __future__ import annotations

import datetime as dt
import enum
import logging
import uuid
from dataclasses import dataclass, replace
from typing import Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import models
from .errors import (
    EntryHasDependents,
    EntryNotFound,
    InsufficientStock,
    LedgerValidationError,
    MovementNotFound,
)
from .rbac import Actor, ensure_can_write
from .store import read_document, run_transaction

logger = logging.getLogger("stock-api.ledger")

DEFAULT_MAX_ATTEMPTS = 5

OTHER_REASON = "Otro"

Movement = Union[models.Assignment, models.Scrap]


class MovementKind(str, enum.Enum):
    ASSIGNMENT = "assignment"
    SCRAP = "scrap"

    @property
    def model(self) -> type[Movement]:
        return models.Assignment if self is MovementKind.ASSIGNMENT else models.Scrap


@dataclass(frozen=True)
class MovementDetails:
    date_iso: dt.date | None
    reason: str
    worker: str = ""
    detail: str = ""


def validate_movement(kind: MovementKind, quantity: object, details: MovementDetails) -> MovementDetails:
    """Check a movement request and return its normalized details."""

    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise LedgerValidationError("La cantidad debe ser un entero mayor a cero")
    if not isinstance(details.date_iso, dt.date):
        raise LedgerValidationError("Debes indicar la fecha del movimiento")

    reason = (details.reason or "").strip()
    worker = (details.worker or "").strip()
    detail = (details.detail or "").strip()
    if not reason:
        raise LedgerValidationError("Debes indicar el motivo")

    if kind is MovementKind.ASSIGNMENT:
        if not worker:
            raise LedgerValidationError("Debes indicar el trabajador")
        detail = ""
    else:
        if reason == OTHER_REASON and not detail:
            raise LedgerValidationError("Debes ingresar detalle cuando motivo es 'Otro'")
        if reason != OTHER_REASON:
            detail = ""
        worker = ""

    return replace(details, reason=reason, worker=worker, detail=detail)


def _build_movement(
    kind: MovementKind,
    entry: models.StockEntry,
    quantity: int,
    details: MovementDetails,
    actor: Actor,
) -> Movement:
    snapshot = {
        "date_iso": details.date_iso,
        "entry_id": entry.id,
        "entry_type": entry.type or "",
        "entry_desc": entry.description or "",
        "entry_label": entry.label,
        "quantity": quantity,
        "reason": details.reason,
        "created_by": actor.id,
        "created_by_name": actor.name,
    }
    if kind is MovementKind.ASSIGNMENT:
        return models.Assignment(worker=details.worker, **snapshot)
    return models.Scrap(detail=details.detail, **snapshot)


async def _count_dependents(session: AsyncSession, model: type[Movement], entry_id: uuid.UUID) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(model.entry_id == entry_id))
    return int(result.scalar_one())


class LedgerService:
    """Records and reverses movements against stock entries."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._session_factory = session_factory
        self._max_attempts = max_attempts

    async def get_entry(self, entry_id: uuid.UUID) -> models.StockEntry | None:
        return await read_document(self._session_factory, models.StockEntry, entry_id)

    async def record_movement(
        self,
        kind: MovementKind,
        entry_id: uuid.UUID,
        quantity: int,
        details: MovementDetails,
        *,
        actor: Actor,
    ) -> Movement:
        """Decrement the entry and insert the movement in one transaction.

        Raises :class:`InsufficientStock` with the live available quantity
        when ``quantity`` exceeds it.
        """

        ensure_can_write(actor)
        details = validate_movement(kind, quantity, details)

        async def body(session: AsyncSession) -> tuple[Movement, int]:
            entry = await session.get(models.StockEntry, entry_id)
            if entry is None:
                raise EntryNotFound(entry_id)
            available = entry.quantity_available or 0
            if quantity > available:
                raise InsufficientStock(requested=quantity, available=available)

            entry.quantity_available = available - quantity
            movement = _build_movement(kind, entry, quantity, details, actor)
            session.add(movement)
            await session.flush()
            return movement, entry.quantity_available

        movement, remaining = await run_transaction(
            self._session_factory, body, max_attempts=self._max_attempts, name=f"record_{kind.value}"
        )
        logger.info(
            "Recorded %s %s on entry %s: qty=%d available=%d",
            kind.value,
            movement.id,
            entry_id,
            quantity,
            remaining,
        )
        return movement

    async def delete_movement(self, kind: MovementKind, movement_id: uuid.UUID, *, actor: Actor) -> None:
        """Give the movement's quantity back to its entry and delete it.

        The increment is relative to the entry's current value, so other
        movements recorded in the meantime are preserved. A missing entry
        skips the restore.
        """

        ensure_can_write(actor)
        model = kind.model

        async def body(session: AsyncSession) -> None:
            movement = await session.get(model, movement_id)
            if movement is None:
                raise MovementNotFound(movement_id)

            entry = await session.get(models.StockEntry, movement.entry_id)
            if entry is None:
                logger.warning(
                    "Entry %s of %s %s no longer exists; skipping restore",
                    movement.entry_id,
                    kind.value,
                    movement_id,
                )
            else:
                restored = entry.quantity_available + movement.quantity
                if restored > entry.quantity_received:
                    logger.warning(
                        "Restoring %s %s would leave entry %s at %d of %d; clamping",
                        kind.value,
                        movement_id,
                        entry.id,
                        restored,
                        entry.quantity_received,
                    )
                    restored = entry.quantity_received
                entry.quantity_available = restored

            await session.delete(movement)

        await run_transaction(
            self._session_factory, body, max_attempts=self._max_attempts, name=f"delete_{kind.value}"
        )
        logger.info("Deleted %s %s", kind.value, movement_id)

    async def delete_stock_entry(self, entry_id: uuid.UUID, *, actor: Actor) -> None:
        """Delete an entry that no movement references.

        Dependents are counted inside the same transaction as the delete,
        and the delete is version checked against the read.
        """

        ensure_can_write(actor)

        async def body(session: AsyncSession) -> None:
            entry = await session.get(models.StockEntry, entry_id)
            if entry is None:
                raise EntryNotFound(entry_id)

            assignments = await _count_dependents(session, models.Assignment, entry_id)
            scrap = await _count_dependents(session, models.Scrap, entry_id)
            if assignments or scrap:
                raise EntryHasDependents(assignments=assignments, scrap=scrap)

            await session.delete(entry)

        await run_transaction(
            self._session_factory, body, max_attempts=self._max_attempts, name="delete_entry"
        )
        logger.info("Deleted entry %s", entry_id)
