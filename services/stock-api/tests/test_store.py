import asyncio
import datetime as dt

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from apa_stock import models
from apa_stock.errors import InsufficientStock, TransactionAborted
from apa_stock.ledger import MovementDetails, MovementKind
from apa_stock.store import is_conflict, run_transaction
from helpers import count_rows, insert_entry, ledger_state


class _PgError(Exception):
    def __init__(self, sqlstate: str) -> None:
        super().__init__(sqlstate)
        self.sqlstate = sqlstate


def details() -> MovementDetails:
    return MovementDetails(date_iso=dt.date(2024, 5, 6), reason="Uso diario", worker="Ana")


def test_is_conflict_classification() -> None:
    assert is_conflict(StaleDataError("stale"))
    assert is_conflict(OperationalError("UPDATE", {}, _PgError("40001")))
    assert is_conflict(OperationalError("UPDATE", {}, _PgError("40P01")))
    assert is_conflict(OperationalError("UPDATE", {}, Exception("database is locked")))
    assert not is_conflict(IntegrityError("INSERT", {}, _PgError("23505")))
    assert not is_conflict(ValueError("boom"))


async def test_conflicting_attempt_is_retried(session_factory) -> None:
    entry_id = await insert_entry(session_factory, received=10)
    attempts = []

    async def body(session):
        attempts.append(1)
        entry = await session.get(models.StockEntry, entry_id)
        entry.quantity_available -= 1
        if len(attempts) == 1:
            raise StaleDataError("simulated conflict")
        return entry.quantity_available

    result = await run_transaction(session_factory, body, max_attempts=3)

    assert result == 9
    assert len(attempts) == 2
    available, _, _ = await ledger_state(session_factory, entry_id)
    assert available == 9


async def test_transaction_aborted_after_bounded_attempts(session_factory) -> None:
    entry_id = await insert_entry(session_factory, received=10)
    attempts = []

    async def body(session):
        attempts.append(1)
        entry = await session.get(models.StockEntry, entry_id)
        entry.quantity_available -= 1
        raise StaleDataError("always losing")

    with pytest.raises(TransactionAborted) as excinfo:
        await run_transaction(session_factory, body, max_attempts=3)

    assert excinfo.value.attempts == 3
    assert len(attempts) == 3
    available, _, _ = await ledger_state(session_factory, entry_id)
    assert available == 10


async def test_domain_errors_are_not_retried(session_factory) -> None:
    attempts = []

    async def body(session):
        attempts.append(1)
        raise InsufficientStock(requested=3, available=1)

    with pytest.raises(InsufficientStock):
        await run_transaction(session_factory, body, max_attempts=5)

    assert len(attempts) == 1


async def test_stale_read_cannot_overwrite_newer_counter(ledger, session_factory, operator) -> None:
    entry_id = await insert_entry(session_factory, received=5)

    async with session_factory() as stale_session:
        stale_entry = await stale_session.get(models.StockEntry, entry_id)
        await ledger.record_movement(MovementKind.ASSIGNMENT, entry_id, 3, details(), actor=operator)

        stale_entry.quantity_available = stale_entry.quantity_available - 3
        with pytest.raises(StaleDataError):
            await stale_session.commit()

    assert await ledger_state(session_factory, entry_id) == (2, 3, 5)


async def test_concurrent_movements_never_overdraw(ledger, session_factory, operator) -> None:
    entry_id = await insert_entry(session_factory, received=5)

    results = await asyncio.gather(
        ledger.record_movement(MovementKind.ASSIGNMENT, entry_id, 3, details(), actor=operator),
        ledger.record_movement(MovementKind.ASSIGNMENT, entry_id, 3, details(), actor=operator),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, models.Assignment)]
    shortages = [r for r in results if isinstance(r, InsufficientStock)]
    assert len(successes) == 1
    assert len(shortages) == 1
    assert shortages[0].available == 2
    assert await ledger_state(session_factory, entry_id) == (2, 3, 5)
    assert await count_rows(session_factory, models.Assignment) == 1


async def test_run_transaction_requires_an_attempt(session_factory) -> None:
    async def body(session):
        return None

    with pytest.raises(ValueError):
        await run_transaction(session_factory, body, max_attempts=0)
