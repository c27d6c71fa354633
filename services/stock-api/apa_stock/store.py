"""Transactional access to the document tables.

``run_transaction`` is the only way the ledger mutates stock. Each attempt
runs the body in a fresh session and transaction; the body must not commit.
Rows mapped with a ``version_id_col`` make every UPDATE and DELETE
conditional on the version read in the same attempt, so a concurrent
writer shows up as :class:`StaleDataError` on flush and the body is run
again from scratch.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from .errors import TransactionAborted

logger = logging.getLogger("stock-api.store")

T = TypeVar("T")

TransactionBody = Callable[[AsyncSession], Awaitable[T]]

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


def is_conflict(exc: BaseException) -> bool:
    """Return True when ``exc`` means another transaction won the race."""

    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if sqlstate in RETRYABLE_SQLSTATES:
            return True
        if isinstance(exc, OperationalError) and "database is locked" in str(orig):
            return True
    return False


async def run_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    body: TransactionBody[T],
    *,
    max_attempts: int,
    name: str = "transaction",
) -> T:
    """Run ``body`` atomically, retrying on conflicts.

    Writes made by ``body`` are durable only if this coroutine returns.
    Exceptions raised by ``body`` roll the attempt back and propagate
    unchanged unless they are conflicts. After ``max_attempts`` conflicting
    attempts :class:`TransactionAborted` is raised.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: BaseException | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            async with session_factory() as session:
                async with session.begin():
                    result = await body(session)
            return result
        except (StaleDataError, DBAPIError) as exc:
            if not is_conflict(exc):
                raise
            last_error = exc
            logger.warning("%s conflict on attempt %d/%d: %s", name, attempt, max_attempts, exc)

    logger.error("%s aborted after %d attempts", name, max_attempts)
    raise TransactionAborted(attempts=max_attempts) from last_error


async def read_document(
    session_factory: async_sessionmaker[AsyncSession], model: type[Any], document_id: uuid.UUID
) -> Any | None:
    """Read one row outside any ledger transaction. The value may be stale."""

    async with session_factory() as session:
        return await session.get(model, document_id)
