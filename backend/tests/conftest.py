"""Pytest configuration and fixtures for backend tests.

The environment is configured before any accounts_gate module is imported:
settings are read once at import time.
"""

import os
import time
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app modules
TEST_JWT_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["JWT_SECRET"] = TEST_JWT_SECRET
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
# High general limit so API tests never trip it
os.environ["RATE_LIMIT_MAX_REQUESTS"] = "10000"

from accounts_gate.middleware.admission import AdmissionController  # noqa: E402
from accounts_gate.models.account import Role  # noqa: E402
from accounts_gate.services.accounts import AccountRecord  # noqa: E402
from accounts_gate.services.revocation import InMemoryRevocationRegistry  # noqa: E402
from accounts_gate.services.tokens import create_access_token  # noqa: E402

ADMIN_ID = "admin-1"
ACCOUNTANT_ID = "accountant-1"
CONTACT_ID = "contact-1"
INACTIVE_ID = "inactive-1"


class FakeAccountStore:
    """In-memory AccountStore double."""

    def __init__(self, *records: AccountRecord):
        self.records = {record.id: record for record in records}
        self.error: Exception | None = None
        self.lookups: list[str] = []

    def add(self, record: AccountRecord) -> None:
        self.records[record.id] = record

    async def get_by_id(self, account_id: str) -> AccountRecord | None:
        self.lookups.append(account_id)
        if self.error is not None:
            raise self.error
        return self.records.get(account_id)


@pytest.fixture
def account_store() -> FakeAccountStore:
    return FakeAccountStore(
        AccountRecord(id=ADMIN_ID, role=Role.ADMIN, email="admin@example.com", name="Ada Admin"),
        AccountRecord(
            id=ACCOUNTANT_ID,
            role=Role.ACCOUNTANT,
            email="books@example.com",
            name="Bo Books",
        ),
        AccountRecord(id=CONTACT_ID, role=Role.CONTACT, email="client@example.com", name="Cy Client"),
        AccountRecord(
            id=INACTIVE_ID,
            role=Role.CONTACT,
            is_active=False,
            email="gone@example.com",
            name="Gone",
        ),
    )


@pytest.fixture
def revocation_store() -> InMemoryRevocationRegistry:
    return InMemoryRevocationRegistry()


@pytest.fixture
def admission_controller() -> AdmissionController:
    """A fresh controller, independent of the process-wide singleton."""
    return AdmissionController()


@pytest.fixture
def make_token():
    """Token factory signed with the test secret."""

    def _make(account_id: str, **kwargs) -> str:
        kwargs.setdefault("secret", TEST_JWT_SECRET)
        return create_access_token(account_id, **kwargs)

    return _make


@pytest.fixture
def auth_headers(make_token):
    """Authorization header factory."""

    def _headers(account_id: str, **kwargs) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(account_id, **kwargs)}"}

    return _headers


@pytest.fixture
def app(account_store, revocation_store, admission_controller):
    """Application wired with in-memory collaborators."""
    from accounts_gate.main import create_app

    return create_app(
        account_store=account_store,
        revocation_store=revocation_store,
        admission_controller=admission_controller,
    )


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async test client. Unhandled errors are returned as 500 responses."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def epoch_now() -> int:
    return int(time.time())


def utc_from_epoch(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=UTC)


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    """Session factory over a throwaway SQLite database with all tables created."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    from accounts_gate.models import Base

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'accounts_gate.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
