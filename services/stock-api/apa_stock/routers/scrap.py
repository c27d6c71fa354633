import datetime as dt
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_ledger, get_session
from ..ledger import OTHER_REASON, LedgerService, MovementDetails, MovementKind
from ..rbac import Role, actor_for, require_role

router = APIRouter()


def reason_label(reason: str, detail: str) -> str:
    if reason == OTHER_REASON:
        return f"{reason}: {detail or ''}"
    return reason or ""


def _build_scrap_response(row: models.Scrap) -> schemas.ScrapResponse:
    return schemas.ScrapResponse(
        id=row.id,
        date_iso=row.date_iso,
        entry_id=row.entry_id,
        entry_type=row.entry_type or "",
        entry_desc=row.entry_desc or "",
        entry_label=row.entry_label or "",
        quantity=row.quantity,
        reason=row.reason,
        detail=row.detail or "",
        reason_label=reason_label(row.reason, row.detail),
        created_by=row.created_by,
        created_by_name=row.created_by_name or "",
        created_at=row.created_at,
    )


@router.post("/", response_model=schemas.ScrapResponse, status_code=status.HTTP_201_CREATED)
async def create_scrap(
    payload: schemas.ScrapCreate,
    ledger: LedgerService = Depends(get_ledger),
    user=Depends(get_current_user),
) -> schemas.ScrapResponse:
    require_role(user, Role.OPERATOR)
    scrap = await ledger.record_movement(
        MovementKind.SCRAP,
        payload.entry_id,
        payload.quantity,
        MovementDetails(date_iso=payload.date_iso, reason=payload.reason, detail=payload.detail),
        actor=actor_for(user),
    )
    return _build_scrap_response(scrap)


@router.get("/", response_model=list[schemas.ScrapResponse])
async def list_scrap(
    date_from: dt.date | None = Query(None),
    date_to: dt.date | None = Query(None),
    limit: int = Query(400, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
) -> list[schemas.ScrapResponse]:
    require_role(user, Role.READONLY)
    query = select(models.Scrap)
    if date_from:
        query = query.where(models.Scrap.date_iso >= date_from)
    if date_to:
        query = query.where(models.Scrap.date_iso <= date_to)
    result = await session.execute(
        query.order_by(models.Scrap.date_iso.desc(), models.Scrap.created_at.desc()).limit(limit)
    )
    return [_build_scrap_response(row) for row in result.scalars().all()]


@router.delete("/{scrap_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_scrap(
    scrap_id: uuid.UUID,
    ledger: LedgerService = Depends(get_ledger),
    user=Depends(get_current_user),
) -> None:
    require_role(user, Role.OPERATOR)
    await ledger.delete_movement(MovementKind.SCRAP, scrap_id, actor=actor_for(user))
