# tests/conftest.py
"""
Shared fixtures for the suite.

Services run against a fresh in-memory SQLite database per test; API tests
drive the FastAPI app through httpx with ``get_db`` pointed at that same
database and real JWTs in the Authorization header.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

from datetime import date

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.roles import RoleDirectory
from app.core.security import create_access_token
from app.database import Base, get_db
from app.main import app
from app.models.period import AssessmentPeriod, PinPeriod
from app.models.user import User
from app.utils.password import hash_password

PASSWORD = "secret123"
_HASHED = hash_password(PASSWORD)


# ── Database ──────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine.sync_engine, "connect")
    def _no_autobegin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ── Factories ─────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def make_user(db):
    counter = {"n": 0}

    async def _make(name=None, role="user", **kwargs) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=kwargs.pop("email", f"pegawai{n}@bps.go.id"),
            name=name or f"Pegawai {n}",
            hashed_password=_HASHED,
            role=role,
            **kwargs,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        await db.commit()
        db.expunge(user)
        return user

    return _make


@pytest_asyncio.fixture
async def make_period(db):
    async def _make(kind="pin", start=date(2025, 9, 1), end=date(2025, 9, 30), month=9, year=2025, active=True):
        model = PinPeriod if kind == "pin" else AssessmentPeriod
        period = model(month=month, year=year, start_date=start, end_date=end, is_active=active, is_completed=False)
        db.add(period)
        await db.flush()
        await db.refresh(period)
        await db.commit()
        db.expunge(period)
        return period

    return _make


@pytest_asyncio.fixture
async def roles(db):
    async def _load() -> RoleDirectory:
        return await RoleDirectory.load(db, admin_overrides=set(), supervisor_overrides=set())

    return _load


# ── HTTP ──────────────────────────────────────────────────────────────────────

def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return auth_headers
