"""Roles and capability checks shared by the routers and the ledger."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import status

from .errors import PermissionDenied, api_error


class Role(str, enum.Enum):
    ADMIN = "admin"
    OPERATOR = "operator"
    READONLY = "consulta"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Unknown or missing roles fall back to read only."""

        try:
            return cls(value)
        except ValueError:
            return cls.READONLY


ROLE_RANK = {Role.READONLY: 0, Role.OPERATOR: 1, Role.ADMIN: 2}

WRITER_ROLES = frozenset({Role.ADMIN, Role.OPERATOR})


@dataclass(frozen=True)
class Actor:
    """Who is calling the ledger, as far as authorization is concerned."""

    id: uuid.UUID | None
    name: str
    role: Role

    @property
    def can_write(self) -> bool:
        return self.role in WRITER_ROLES


def actor_for(user: Any) -> Actor:
    name = getattr(user, "name", None) or getattr(user, "email", None) or "Usuario"
    return Actor(id=getattr(user, "id", None), name=name, role=Role.parse(getattr(user, "role", None)))


def has_role(user: Any, role: Role | str) -> bool:
    required = Role.parse(role)
    return ROLE_RANK[Role.parse(getattr(user, "role", None))] >= ROLE_RANK[required]


def require_role(user: Any, role: Role | str) -> None:
    """Raise 403 unless ``user`` holds ``role`` or a higher one."""

    if not getattr(user, "active", True):
        raise api_error(status.HTTP_403_FORBIDDEN, "auth.inactive_user", "Usuario inactivo")
    if not has_role(user, role):
        raise api_error(status.HTTP_403_FORBIDDEN, "auth.forbidden", "No tienes permisos para esta operación")


def ensure_can_write(actor: Actor) -> None:
    if not actor.can_write:
        raise PermissionDenied("No tienes permisos para modificar el stock")
