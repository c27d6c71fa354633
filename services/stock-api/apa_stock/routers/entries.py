"""Stock entries: plain inserts, listings and the guarded delete."""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_ledger, get_session
from ..errors import EntryNotFound
from ..ledger import LedgerService
from ..rbac import Role, actor_for, require_role

router = APIRouter()


def _build_entry_response(entry: models.StockEntry) -> schemas.StockEntryResponse:
    return schemas.StockEntryResponse(
        id=entry.id,
        date_iso=entry.date_iso,
        type=entry.type,
        description=entry.description,
        reference=entry.reference or "",
        quantity_received=entry.quantity_received,
        quantity_available=entry.quantity_available,
        created_by=entry.created_by,
        created_by_name=entry.created_by_name or "",
        created_at=entry.created_at,
    )


@router.post("/", response_model=schemas.StockEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(
    payload: schemas.StockEntryCreate,
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
) -> schemas.StockEntryResponse:
    require_role(user, Role.OPERATOR)
    actor = actor_for(user)
    entry = models.StockEntry(
        date_iso=payload.date_iso,
        type=payload.type.strip(),
        description=payload.description.strip(),
        reference=payload.reference.strip(),
        quantity_received=payload.quantity_received,
        quantity_available=payload.quantity_received,
        created_by=actor.id,
        created_by_name=actor.name,
    )
    session.add(entry)
    await session.commit()
    return _build_entry_response(entry)


@router.get("/", response_model=list[schemas.StockEntryResponse])
async def list_entries(
    type: str | None = Query(None),
    q: str | None = Query(None),
    limit: int = Query(400, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
) -> list[schemas.StockEntryResponse]:
    require_role(user, Role.READONLY)
    query = select(models.StockEntry)
    if type:
        query = query.where(models.StockEntry.type == type)
    text = (q or "").strip().lower()
    if text:
        query = query.where(
            or_(
                func.lower(models.StockEntry.description).contains(text, autoescape=True),
                func.lower(models.StockEntry.reference).contains(text, autoescape=True),
            )
        )
    result = await session.execute(
        query.order_by(models.StockEntry.date_iso.desc(), models.StockEntry.created_at.desc()).limit(limit)
    )
    return [_build_entry_response(row) for row in result.scalars().all()]


@router.get("/available", response_model=list[schemas.StockEntryOption])
async def list_available_entries(
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
) -> list[schemas.StockEntryOption]:
    require_role(user, Role.READONLY)
    result = await session.execute(
        select(models.StockEntry)
        .where(models.StockEntry.quantity_available > 0)
        .order_by(models.StockEntry.date_iso.desc())
    )
    return [
        schemas.StockEntryOption(
            id=row.id,
            label=f"{row.label} (Disp: {row.quantity_available})",
            quantity_available=row.quantity_available,
        )
        for row in result.scalars().all()
    ]


@router.get("/{entry_id}", response_model=schemas.StockEntryResponse)
async def get_entry(
    entry_id: uuid.UUID,
    ledger: LedgerService = Depends(get_ledger),
    user=Depends(get_current_user),
) -> schemas.StockEntryResponse:
    require_role(user, Role.READONLY)
    entry = await ledger.get_entry(entry_id)
    if entry is None:
        raise EntryNotFound(entry_id)
    return _build_entry_response(entry)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: uuid.UUID,
    ledger: LedgerService = Depends(get_ledger),
    user=Depends(get_current_user),
) -> None:
    require_role(user, Role.OPERATOR)
    await ledger.delete_stock_entry(entry_id, actor=actor_for(user))
