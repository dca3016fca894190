"""
Pytest configuration for teamtrack tests.

The app runs in-process over httpx's ASGITransport against a throwaway
SQLite database (aiosqlite) and an in-memory Redis (fakeredis).
"""

import os
import tempfile
import uuid

_DB_PATH = os.path.join(tempfile.gettempdir(), f"teamtrack_test_{uuid.uuid4().hex[:8]}.db")

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ.setdefault("JWT_SECRET_KEY", "test-access-secret-key-0123456789abcdef")
os.environ.setdefault("JWT_REFRESH_SECRET_KEY", "test-refresh-secret-key-0123456789abcdef")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import httpx  # noqa: E402
import pytest  # noqa: E402
from fakeredis import FakeAsyncRedis  # noqa: E402
from sqlalchemy import event  # noqa: E402

from teamtrack.core.database import AsyncSessionLocal, engine  # noqa: E402
from teamtrack.core.dependencies import get_redis  # noqa: E402
from teamtrack.core.security import hash_password  # noqa: E402
from teamtrack.main import app  # noqa: E402
from teamtrack.models import Base, User, UserRole  # noqa: E402

from helpers import PASSWORD, unique_email  # noqa: E402

BASE_URL = "http://test"


# pysqlite/aiosqlite manage transactions on their own, which breaks
# SAVEPOINT; take over BEGIN so nested transactions work.
@event.listens_for(engine.sync_engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine.sync_engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


def pytest_sessionfinish(session, exitstatus):
    if os.path.exists(_DB_PATH):
        os.remove(_DB_PATH)


# ---------------------------------------------------------------------------
# Database / Redis / client
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
async def _schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session():
    async with AsyncSessionLocal() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def redis():
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
async def client(redis):
    async def _override_redis():
        return redis

    app.dependency_overrides[get_redis] = _override_redis
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user():
    """Insert a user directly and return it (committed)."""

    async def _make(
        role: UserRole = UserRole.member,
        first_name: str = "Test",
        last_name: str = "User",
        email: str | None = None,
        is_active: bool = True,
    ) -> User:
        async with AsyncSessionLocal() as session:
            user = User(
                email=email or unique_email(first_name.lower()),
                password_hash=hash_password(PASSWORD),
                first_name=first_name,
                last_name=last_name,
                role=role,
                is_active=is_active,
            )
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest.fixture
async def admin(make_user) -> User:
    return await make_user(UserRole.admin, first_name="Ada", last_name="Admin")


@pytest.fixture
async def alice(make_user) -> User:
    return await make_user(first_name="Alice", last_name="Owner")


@pytest.fixture
async def bob(make_user) -> User:
    return await make_user(first_name="Bob", last_name="Builder")


@pytest.fixture
async def carol(make_user) -> User:
    return await make_user(first_name="Carol", last_name="Outsider")
