"""
Pytest configuration: every test gets its own SQLite database file.
"""

import os
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Settings are read at import time, so configure them BEFORE importing counsel modules
os.environ["POSTGRES_DSN"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENV"] = "local"
os.environ["OUTBOX_RELAY_ENABLED"] = "false"
os.environ["EVENT_BUS_PROVIDER"] = "noop"
os.environ["PAYMENT_WEBHOOK_SECRET"] = "test-webhook-secret"

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from counsel.core.base import Base
from counsel.core.db import import_models, get_session
from counsel.core.security import Principal, get_principal
from counsel.modules.services.service import CatalogService
from counsel.modules.services.schemas import ServiceCreate
from counsel.modules.slots.service import SlotService
from counsel.modules.slots.schemas import SlotWindow

# Monday
NOW = datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc)
SLOT_START = datetime(2030, 1, 8, 10, 0, tzinfo=timezone.utc)
SLOT_END = SLOT_START + timedelta(hours=1)


@pytest.fixture
async def engine(tmp_path):
    # writers from concurrent sessions wait on the file lock instead of failing
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'counsel.db'}", connect_args={"timeout": 30})
    import_models()
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def consultant_id():
    return uuid.uuid4()


@pytest.fixture
def customer_id():
    return uuid.uuid4()


@pytest.fixture
async def service(session):
    return await CatalogService(session).create(ServiceCreate(name="Individual counseling", price=Decimal("300000")))


@pytest.fixture
def make_slot(session, consultant_id):
    """Creates one slot for the default consultant (or another one)."""
    async def _make(start: datetime = SLOT_START, minutes: int = 60, consultant: uuid.UUID | None = None):
        created, _ = await SlotService(session).create_slots(
            consultant or consultant_id,
            [SlotWindow(start_time=start, end_time=start + timedelta(minutes=minutes))],
        )
        return created[0]
    return _make


@pytest.fixture
async def slot(make_slot):
    return await make_slot()


async def count_rows(session, model) -> int:
    return await session.scalar(select(func.count()).select_from(model))


# ---- API ----

@pytest.fixture
async def app(session_factory):
    from counsel.main import app as fastapi_app

    async def _session():
        async with session_factory() as s:
            yield s

    fastapi_app.dependency_overrides[get_session] = _session
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def act_as(app):
    """Switches the authenticated principal for subsequent requests."""
    def _act(*roles: str, user_id: uuid.UUID | None = None, consultant_id: uuid.UUID | None = None) -> Principal:
        principal = Principal(user_id=user_id or uuid.uuid4(), roles=list(roles), consultant_id=consultant_id)
        app.dependency_overrides[get_principal] = lambda: principal
        return principal
    return _act
