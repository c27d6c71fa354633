"""Internal requests: any user raises one, staff answer it."""

import datetime as dt
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_session
from ..errors import api_error
from ..rbac import Role, actor_for, require_role

router = APIRouter()

PENDING = "Pendiente"
ANSWERED = "Respondida"


def _build_request_response(row: models.Request) -> schemas.RequestResponse:
    return schemas.RequestResponse(
        id=row.id,
        type=row.type,
        text=row.text,
        priority=row.priority,
        status=row.status or PENDING,
        response=row.response or "",
        created_by=row.created_by,
        created_by_name=row.created_by_name or "",
        created_at=row.created_at,
        responded_by=row.responded_by,
        responded_by_name=row.responded_by_name,
        responded_at=row.responded_at,
    )


@router.post("/", response_model=schemas.RequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: schemas.RequestCreate,
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
) -> schemas.RequestResponse:
    require_role(user, Role.READONLY)
    text = payload.text.strip()
    if not text:
        raise api_error(status.HTTP_400_BAD_REQUEST, "request.empty_text", "Completa tipo y detalle")
    actor = actor_for(user)
    request = models.Request(
        type=payload.type.strip(),
        text=text,
        priority=payload.priority,
        status=PENDING,
        response="",
        created_by=actor.id,
        created_by_name=actor.name,
    )
    session.add(request)
    await session.commit()
    return _build_request_response(request)


@router.get("/", response_model=list[schemas.RequestResponse])
async def list_requests(
    status_filter: schemas.RequestStatus | None = Query(None, alias="status"),
    q: str | None = Query(None),
    limit: int = Query(400, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
) -> list[schemas.RequestResponse]:
    require_role(user, Role.READONLY)
    query = select(models.Request)
    if status_filter:
        query = query.where(models.Request.status == status_filter)
    text = (q or "").strip().lower()
    if text:
        query = query.where(
            or_(
                func.lower(models.Request.type).contains(text, autoescape=True),
                func.lower(models.Request.text).contains(text, autoescape=True),
            )
        )
    result = await session.execute(query.order_by(models.Request.created_at.desc()).limit(limit))
    return [_build_request_response(row) for row in result.scalars().all()]


@router.post("/{request_id}/answer", response_model=schemas.RequestResponse)
async def answer_request(
    request_id: uuid.UUID,
    payload: schemas.RequestAnswer,
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
) -> schemas.RequestResponse:
    require_role(user, Role.OPERATOR)
    response = payload.response.strip()
    if not response:
        raise api_error(status.HTTP_400_BAD_REQUEST, "request.empty_response", "La respuesta no puede estar vacía")

    request = await session.get(models.Request, request_id)
    if request is None:
        raise api_error(status.HTTP_404_NOT_FOUND, "request.not_found", "Solicitud no encontrada")
    if (request.status or PENDING) != PENDING:
        raise api_error(status.HTTP_409_CONFLICT, "request.already_answered", "La solicitud ya fue respondida")

    actor = actor_for(user)
    request.status = ANSWERED
    request.response = response
    request.responded_by = actor.id
    request.responded_by_name = actor.name
    request.responded_at = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
    session.add(
        models.Audit(
            entity="request",
            entity_id=str(request.id),
            action="answered",
            payload_json={"response": response, "user_id": str(actor.id)},
            user_id=actor.id,
        )
    )
    await session.commit()
    return _build_request_response(request)
