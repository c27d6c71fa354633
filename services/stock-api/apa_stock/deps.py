"""Database engine, session factory and FastAPI dependencies."""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from . import config
from .ledger import LedgerService


def normalize_async_dsn(url: str) -> str:
    """Map plain DSNs to their async driver variants."""

    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite:///" + url[len("sqlite:///"):]
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


ASYNC_URL = normalize_async_dsn(config.DATABASE_URL)

engine: AsyncEngine = create_async_engine(ASYNC_URL, pool_pre_ping=True)
SessionLocal = build_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session


def get_ledger() -> LedgerService:
    return LedgerService(SessionLocal, max_attempts=config.LEDGER_MAX_TX_ATTEMPTS)
