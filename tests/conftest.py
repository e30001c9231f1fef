"""Shared fixtures for the allowance tracker tests.

Uses SQLite (aiosqlite) by default, no PostgreSQL required.
Set TEST_DATABASE_URL to override (e.g. for CI with real PostgreSQL).
"""

import os
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pytest_asyncio import is_async_test
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")

# Ensure settings can be loaded without .env
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-unit-tests")

from allowance.database import Base  # noqa: E402

PASSWORD = "testpassword123"

# ---------------------------------------------------------------------------
# Engine: SQLite in-memory with StaticPool (shared across connections)
# ---------------------------------------------------------------------------

_engine_kwargs = {}
if TEST_DATABASE_URL.startswith("sqlite"):
    _engine_kwargs = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }

_engine = create_async_engine(TEST_DATABASE_URL, echo=False, **_engine_kwargs)

if TEST_DATABASE_URL.startswith("sqlite"):
    # Let SQLAlchemy emit BEGIN itself so savepoints nest inside the test transaction

    @event.listens_for(_engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(_engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


_TestSession = async_sessionmaker(
    bind=_engine, class_=AsyncSession, expire_on_commit=False,
)


def pytest_collection_modifyitems(items):
    """Run every async test on the session event loop shared with the engine."""
    session_loop = pytest.mark.asyncio(loop_scope="session")
    for item in items:
        if is_async_test(item):
            item.add_marker(session_loop, append=False)


# ---------------------------------------------------------------------------
# Session-scoped: create / drop tables
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(scope="session", loop_scope="session", autouse=True)
async def _setup_tables():
    import allowance.models  # noqa: F401 (populate Base.metadata)

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await _engine.dispose()


# ---------------------------------------------------------------------------
# Reset in-process state before every test
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _reset_rate_limits():
    """Clear rate-limit counters and the sign-in tracker so tests never block each other."""
    from allowance.core.rate_limit import limiter, login_attempts

    storage = getattr(limiter, "_storage", None)
    if storage is not None and hasattr(storage, "reset"):
        storage.reset()
    login_attempts.clear()


@pytest.fixture(autouse=True)
def _reset_outbox():
    from allowance.services.email_service import email_client

    email_client.clear()
    yield
    email_client.clear()


# ---------------------------------------------------------------------------
# Per-test session with rollback
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture()
async def db_session():
    async with _TestSession() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# HTTP test client
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture()
async def client(db_session: AsyncSession):
    from allowance.database import get_db
    from allowance.main import app

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Convenience: accounts and families created through the API
# ---------------------------------------------------------------------------

async def _sign_up(client: AsyncClient, prefix: str = "user") -> dict:
    email = f"{prefix}-{uuid.uuid4().hex[:8]}@test.de"
    resp = await client.post("/api/v1/auth/sign-up", json={
        "email": email,
        "password": PASSWORD,
    })
    assert resp.status_code == 201, resp.text
    session = resp.json()
    return {
        "email": email,
        "password": PASSWORD,
        "user_id": session["user"]["id"],
        "tokens": session,
        "headers": {"Authorization": f"Bearer {session['access_token']}"},
    }


@pytest_asyncio.fixture()
async def registered_parent(client: AsyncClient):
    """Sign up a parent and create their family.

    Keys: headers, user_id, family_id, member_id, email, password, tokens
    """
    account = await _sign_up(client, "parent")
    family_name = f"Test Family {uuid.uuid4().hex[:8]}"
    resp = await client.post(
        "/api/v1/families", json={"name": family_name}, headers=account["headers"],
    )
    assert resp.status_code == 201, resp.text
    family = resp.json()

    resp = await client.get("/api/v1/auth/session", headers=account["headers"])
    assert resp.status_code == 200, resp.text

    return {
        **account,
        "family_id": family["id"],
        "family_name": family_name,
        "member_id": resp.json()["family_member"]["id"],
    }


@pytest_asyncio.fixture()
async def child_member(client: AsyncClient, registered_parent: dict):
    """A child member (not linked to any account) in the parent's family."""
    resp = await client.post(
        f"/api/v1/families/{registered_parent['family_id']}/members",
        json={"name": "Mia", "role": "child", "base_allowance": "10.00"},
        headers=registered_parent["headers"],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture()
def make_account(client: AsyncClient):
    """Factory fixture: ``await make_account("kid")`` signs up a fresh account."""

    async def _make(prefix: str = "user") -> dict:
        return await _sign_up(client, prefix)

    return _make
