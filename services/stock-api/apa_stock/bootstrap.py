"""First-run provisioning of the administrator account."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from . import models
from .auth import get_password_hash
from .rbac import Role

logger = logging.getLogger("stock-api.bootstrap")


async def ensure_admin(session: AsyncSession, *, email: str, password: str, name: str) -> models.User | None:
    """Create an admin when the users table is empty.

    Returns the new user, or None when nothing was created.
    """

    if not email or not password:
        return None
    result = await session.execute(select(func.count()).select_from(models.User))
    if result.scalar_one():
        return None

    admin = models.User(
        email=email.strip().lower(),
        password_hash=get_password_hash(password),
        name=name,
        role=Role.ADMIN.value,
        active=True,
    )
    session.add(admin)
    await session.commit()
    logger.info("Bootstrap admin %s created", admin.email)
    return admin
