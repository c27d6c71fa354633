import asyncio
import os
import sys
import tempfile
import uuid
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

# Ensure the service package is importable when running tests from the repo root
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# The default engine is built at import time; keep it off any real server.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.mkdtemp(prefix='stock-api-')) / 'default.db'}",
)

from apa_stock import models  # noqa: E402
from apa_stock.auth import get_current_user  # noqa: E402
from apa_stock.deps import build_session_factory, get_ledger, get_session  # noqa: E402
from apa_stock.ledger import LedgerService  # noqa: E402
from apa_stock.main import app  # noqa: E402
from apa_stock.rbac import Actor, Role  # noqa: E402
from helpers import make_user  # noqa: E402


def _make_engine(path: Path):
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)


async def _create_schema(engine) -> None:
    async with engine.begin() as connection:
        await connection.run_sync(models.Base.metadata.create_all)


@pytest.fixture()
def operator() -> Actor:
    return Actor(id=uuid.uuid4(), name="Olga Operadora", role=Role.OPERATOR)


@pytest.fixture()
def reader() -> Actor:
    return Actor(id=uuid.uuid4(), name="Carlos Consulta", role=Role.READONLY)


@pytest_asyncio.fixture()
async def session_factory(tmp_path: Path):
    engine = _make_engine(tmp_path / "stock.db")
    await _create_schema(engine)
    try:
        yield build_session_factory(engine)
    finally:
        await engine.dispose()


@pytest.fixture()
def ledger(session_factory) -> LedgerService:
    return LedgerService(session_factory, max_attempts=5)


class ApiHarness:
    """TestClient wired to a throwaway SQLite database."""

    def __init__(self, factory) -> None:
        self.factory = factory
        self.client = TestClient(app)
        self.user = None

    def login_as(self, role: str = "operator", name: str = "Olga Operadora", *, active: bool = True):
        self.user = make_user(role, name, active=active)
        app.dependency_overrides[get_current_user] = lambda: self.user
        return self.user

    def run(self, coro):
        return asyncio.run(coro)


@pytest.fixture()
def api_factory(tmp_path: Path):
    engine = _make_engine(tmp_path / "api.db")
    asyncio.run(_create_schema(engine))
    yield build_session_factory(engine)
    asyncio.run(engine.dispose())


@pytest.fixture()
def api(api_factory) -> ApiHarness:
    async def override_get_session():
        async with api_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_ledger] = lambda: LedgerService(api_factory, max_attempts=5)
    harness = ApiHarness(api_factory)
    harness.login_as("operator")
    yield harness
    app.dependency_overrides.clear()
