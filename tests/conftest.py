"""
GeoTag Backend - Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   A fresh in-memory SQLite database per test (StaticPool keeps the one
       connection alive so every session sees the same data), and an HTTPX
       client bound to a freshly built app whose get_db_session dependency
       points at that database.

Fixture Hierarchy:
    Function-scoped:
    ├── db_engine → db_session: real AsyncSession on in-memory SQLite
    ├── mock_db_session: AsyncMock session for failure paths
    ├── temp_storage: temporary directory for file operations
    ├── sample_image_bytes: tiny JPEG for upload tests
    ├── app → test_client: HTTPX AsyncClient for API endpoint testing
    └── register_user / auth_headers: helpers that go through the real API
"""

import os
import tempfile
from typing import AsyncGenerator, Dict
from unittest.mock import AsyncMock, MagicMock

# Override settings BEFORE any geotag import: config.settings is read once
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="geotag_test_")
os.environ["JWT_SECRET"] = "test-secret-for-geotag-suite"
os.environ["BCRYPT_ROUNDS"] = "4"  # keep hashing fast
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from geotag.database import Base, get_db_session
from geotag.main import create_app
from geotag.services.access_gate import AccessGate
from geotag.services.credential_service import credential_service
from geotag.services.session_service import SessionAuthority
from geotag.services.token_cache import TokenCache

import geotag.models  # noqa: F401  (registers tables on Base.metadata)


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A real session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.side_effect = OperationalError(...)
        with pytest.raises(DatabaseError): ...
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# File Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_image_bytes():
    """
    Minimal JPEG: Start of Image (FFD8) + JFIF marker + End of Image (FFD9).
    Not a real photograph, only a non-empty .jpg payload.
    """
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


# ══════════════════════════════════════════════════════════════════════════
# API Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def access_gate():
    """A gate with its own cache so tests never share verified tokens."""
    return AccessGate(SessionAuthority(), credential_service, TokenCache(ttl_seconds=60))


@pytest.fixture
def app(session_factory, access_gate):
    application = create_app(access_gate=access_gate)

    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = override_get_db_session
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """
    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def register_user(test_client):
    """Register through the API and return the parsed AuthResponse body."""

    async def _register(
        email: str = "ada@example.com",
        password: str = "secret123",
        name: str = "Ada",
    ) -> Dict:
        response = await test_client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _register


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(register_user):
    async def _headers(email: str = "ada@example.com") -> Dict[str, str]:
        body = await register_user(email=email)
        return bearer(body["token"])

    return _headers
