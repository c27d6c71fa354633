import datetime as dt
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_ledger, get_session
from ..ledger import LedgerService, MovementDetails, MovementKind
from ..rbac import Role, actor_for, require_role

router = APIRouter()


def _build_assignment_response(row: models.Assignment) -> schemas.AssignmentResponse:
    return schemas.AssignmentResponse(
        id=row.id,
        date_iso=row.date_iso,
        entry_id=row.entry_id,
        entry_type=row.entry_type or "",
        entry_desc=row.entry_desc or "",
        entry_label=row.entry_label or "",
        worker=row.worker,
        quantity=row.quantity,
        reason=row.reason,
        created_by=row.created_by,
        created_by_name=row.created_by_name or "",
        created_at=row.created_at,
    )


@router.post("/", response_model=schemas.AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    payload: schemas.AssignmentCreate,
    ledger: LedgerService = Depends(get_ledger),
    user=Depends(get_current_user),
) -> schemas.AssignmentResponse:
    require_role(user, Role.OPERATOR)
    assignment = await ledger.record_movement(
        MovementKind.ASSIGNMENT,
        payload.entry_id,
        payload.quantity,
        MovementDetails(date_iso=payload.date_iso, reason=payload.reason, worker=payload.worker),
        actor=actor_for(user),
    )
    return _build_assignment_response(assignment)


@router.get("/", response_model=list[schemas.AssignmentResponse])
async def list_assignments(
    worker: str | None = Query(None),
    date_from: dt.date | None = Query(None),
    date_to: dt.date | None = Query(None),
    limit: int = Query(400, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
) -> list[schemas.AssignmentResponse]:
    require_role(user, Role.READONLY)
    query = select(models.Assignment)
    worker_filter = (worker or "").strip().lower()
    if worker_filter:
        query = query.where(func.lower(models.Assignment.worker).contains(worker_filter, autoescape=True))
    if date_from:
        query = query.where(models.Assignment.date_iso >= date_from)
    if date_to:
        query = query.where(models.Assignment.date_iso <= date_to)
    result = await session.execute(
        query.order_by(models.Assignment.date_iso.desc(), models.Assignment.created_at.desc()).limit(limit)
    )
    return [_build_assignment_response(row) for row in result.scalars().all()]


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: uuid.UUID,
    ledger: LedgerService = Depends(get_ledger),
    user=Depends(get_current_user),
) -> None:
    require_role(user, Role.OPERATOR)
    await ledger.delete_movement(MovementKind.ASSIGNMENT, assignment_id, actor=actor_for(user))
