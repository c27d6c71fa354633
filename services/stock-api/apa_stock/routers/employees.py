from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models, schemas
from ..auth import get_current_user, get_password_hash
from ..deps import get_session
from ..errors import api_error
from ..rbac import Role, actor_for, require_role

router = APIRouter()


def _build_employee_response(user: models.User) -> schemas.EmployeeResponse:
    return schemas.EmployeeResponse(
        id=user.id,
        first=user.first or "",
        last=user.last or "",
        name=user.name,
        email=user.email,
        role=user.role,
        active=user.active,
        created_at=user.created_at,
    )


async def _email_taken(session: AsyncSession, email: str) -> bool:
    result = await session.execute(select(models.User.id).where(models.User.email == email))
    return result.scalar_one_or_none() is not None


def _email_taken_error():
    return api_error(status.HTTP_409_CONFLICT, "employee.email_taken", "Ese correo ya está registrado")


@router.post("/", response_model=schemas.EmployeeResponse, status_code=status.HTTP_201_CREATED)
async def create_employee(
    payload: schemas.EmployeeCreate,
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
) -> schemas.EmployeeResponse:
    require_role(user, Role.ADMIN)
    email = payload.email.strip().lower()
    if await _email_taken(session, email):
        raise _email_taken_error()

    actor = actor_for(user)
    first = payload.first.strip()
    last = payload.last.strip()
    employee = models.User(
        email=email,
        password_hash=get_password_hash(payload.password),
        first=first,
        last=last,
        name=f"{first} {last}",
        role=payload.role,
        active=payload.active,
        created_by=actor.id,
        created_by_name=actor.name,
    )
    session.add(employee)
    try:
        await session.flush()
    except IntegrityError as exc:
        await session.rollback()
        raise _email_taken_error() from exc
    session.add(
        models.Audit(
            entity="employee",
            entity_id=str(employee.id),
            action="created",
            payload_json={"email": email, "role": payload.role, "user_id": str(actor.id)},
            user_id=actor.id,
        )
    )
    await session.commit()
    return _build_employee_response(employee)


@router.get("/", response_model=list[schemas.EmployeeResponse])
async def list_employees(
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
) -> list[schemas.EmployeeResponse]:
    require_role(user, Role.ADMIN)
    result = await session.execute(select(models.User).order_by(models.User.name.asc()))
    return [_build_employee_response(row) for row in result.scalars().all()]


@router.get("/workers", response_model=list[str])
async def list_workers(
    session: AsyncSession = Depends(get_session),
    user=Depends(get_current_user),
) -> list[str]:
    require_role(user, Role.READONLY)
    result = await session.execute(
        select(models.User.name).where(models.User.active.is_(True)).order_by(models.User.name.asc())
    )
    return list(result.scalars().all())
