"""Shared pytest fixtures for unit and integration tests."""

import os
import uuid

# Settings are read at import time; point them at throwaway values first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BILLING_REPOSITORY", "memory")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("DEBUG", "false")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from clinic_billing.api import deps
from clinic_billing.config import settings
from clinic_billing.core.security import create_access_token
from clinic_billing.database import Base
from clinic_billing.main import app
from clinic_billing.models import billing  # noqa: F401
from clinic_billing.repositories.memory import InMemoryBillRepository
from clinic_billing.repositories.sql import SqlBillRepository


@pytest.fixture
def tenant_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def memory_repo() -> InMemoryBillRepository:
    return InMemoryBillRepository()


@pytest.fixture
async def db_session():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def sql_repo(db_session: AsyncSession) -> SqlBillRepository:
    return SqlBillRepository(db_session)


@pytest.fixture
def api_base() -> str:
    """Base URL for API requests."""
    return f"http://test{settings.API_V1_PREFIX}"


@pytest.fixture
async def async_client(api_base: str, memory_repo: InMemoryBillRepository):
    """Async HTTP client over the ASGI app, backed by a per-test memory store."""
    app.dependency_overrides[deps.get_bill_repository] = lambda: memory_repo
    transport = ASGITransport(app=app)
    client = AsyncClient(transport=transport, base_url=api_base, timeout=30.0)
    yield client
    await client.aclose()
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(tenant_id: uuid.UUID, user_id: uuid.UUID) -> dict:
    token = create_access_token({"sub": str(user_id), "tenant_id": str(tenant_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_tenant_headers() -> dict:
    token = create_access_token({"sub": str(uuid.uuid4()), "tenant_id": str(uuid.uuid4())})
    return {"Authorization": f"Bearer {token}"}
