"""Pytest configuration and fixtures for BillTrack tests.

Provides an in-memory SQLite database, an in-memory Redis stand-in, an
httpx client bound to the app, and owner / staff users with tokens.
"""

import fnmatch
import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
import redis.asyncio as redis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import billtrack.models  # noqa: F401
from billtrack.auth.jwt import create_access_token
from billtrack.auth.password import hash_password
from billtrack.database import Base, get_db
from billtrack.main import app
from billtrack.models.user import User, UserRole
from billtrack.utils.cache import ResponseCache, get_cache


# ── Redis stand-ins ──────────────────────────────────────────────

class FakeRedis:
    """The slice of the redis.asyncio client that ResponseCache uses."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def scan_iter(self, match="*"):
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def ping(self):
        return True

    async def aclose(self):
        pass


class DownRedis(FakeRedis):
    """Every call fails the way a dropped connection does."""

    async def get(self, key):
        raise redis.ConnectionError("Connection refused")

    async def setex(self, key, ttl, value):
        raise redis.ConnectionError("Connection refused")

    async def scan_iter(self, match="*"):
        raise redis.ConnectionError("Connection refused")
        yield  # pragma: no cover

    async def delete(self, *keys):
        raise redis.ConnectionError("Connection refused")

    async def ping(self):
        raise redis.ConnectionError("Connection refused")


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis: FakeRedis) -> ResponseCache:
    return ResponseCache(fake_redis, ttl=60)


@pytest.fixture
def down_cache() -> ResponseCache:
    return ResponseCache(DownRedis(), ttl=60)


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, cache) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the database and cache dependencies overridden."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_cache():
        return cache

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = override_get_cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

async def _make_user(session: AsyncSession, username: str, role: UserRole) -> User:
    user = User(
        id=str(uuid.uuid4()),
        username=username,
        hashed_password=hash_password("testpassword123"),
        first_name="Test",
        last_name=role.value.title(),
        role=role,
        is_active=True,
    )
    session.add(user)
    await session.commit()
    return user


@pytest_asyncio.fixture
async def owner_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "owner", UserRole.OWNER)


@pytest_asyncio.fixture
async def staff_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "staff", UserRole.STAFF)


@pytest.fixture
def auth_headers(owner_user: User) -> dict:
    token = create_access_token(user_id=owner_user.id, role=owner_user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def staff_headers(staff_user: User) -> dict:
    token = create_access_token(user_id=staff_user.id, role=staff_user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client_department(client: AsyncClient, auth_headers: dict) -> dict:
    """A client with one billable department ("Accounting")."""
    resp = await client.post(
        "/api/clients/", json={"name": "Acme Corp"}, headers=auth_headers
    )
    assert resp.status_code == 201, resp.text
    acme = resp.json()

    resp = await client.post(
        "/api/client-departments/",
        json={"client_id": acme["id"], "name": "Accounting"},
        headers=auth_headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def make_billing(client: AsyncClient, auth_headers: dict, client_department: dict):
    """Factory: issue a billing for `client_department` and return the response body."""

    async def _make(invoice_number: str, amount: str = "1000.00", **extra) -> dict:
        body = {
            "invoice_number": invoice_number,
            "department_id": client_department["id"],
            "amount": amount,
            "month": 1,
            "year": 2025,
            "billing_date": "2025-01-31",
            "billing_type": "rental",
            **extra,
        }
        resp = await client.post("/api/billings/", json=body, headers=auth_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make


@pytest.fixture
def pay(client: AsyncClient, auth_headers: dict):
    """Factory: record a payment against a collection, returning the raw response."""

    async def _pay(collection: dict, or_number: str, amount: str, **extra):
        body = {
            "invoice_number": collection["invoice_number"],
            "or_number": or_number,
            "amount": amount,
            "payment_date": "2025-02-15",
            **extra,
        }
        return await client.post(
            f"/api/collections/{collection['id']}/payments",
            json=body,
            headers=auth_headers,
        )

    return _pay


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
    config.addinivalue_line("markers", "cache: Cache behaviour tests")
    config.addinivalue_line("markers", "auth: Authentication and role tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
