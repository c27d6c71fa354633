import datetime as dt
import uuid
from types import SimpleNamespace

from sqlalchemy import func, select

from apa_stock import models

ENTRY_DATE = dt.date(2024, 5, 2)


async def insert_entry(
    factory,
    *,
    received: int = 10,
    available: int | None = None,
    type: str = "EPP",
    description: str = "Guantes de nitrilo",
) -> uuid.UUID:
    async with factory() as session:
        entry = models.StockEntry(
            date_iso=ENTRY_DATE,
            type=type,
            description=description,
            reference="OC-1001",
            quantity_received=received,
            quantity_available=received if available is None else available,
            created_by_name="Seed",
        )
        session.add(entry)
        await session.commit()
        return entry.id


async def ledger_state(factory, entry_id: uuid.UUID) -> tuple[int, int, int]:
    """Return (available, sum of movement quantities, received) for an entry."""

    async with factory() as session:
        entry = await session.get(models.StockEntry, entry_id)
        moved = 0
        for model in (models.Assignment, models.Scrap):
            result = await session.execute(
                select(func.coalesce(func.sum(model.quantity), 0)).where(model.entry_id == entry_id)
            )
            moved += int(result.scalar_one())
        return entry.quantity_available, moved, entry.quantity_received


async def count_rows(factory, model) -> int:
    async with factory() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return int(result.scalar_one())


def make_user(role: str = "operator", name: str = "Olga Operadora", *, active: bool = True):
    return SimpleNamespace(
        id=uuid.uuid4(),
        email=f"{uuid.uuid4().hex[:8]}@apa.cl",
        name=name,
        role=role,
        active=active,
    )
