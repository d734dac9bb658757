"""
AlumniConnect - Test Configuration and Fixtures

The reference data service runs in-process behind httpx.ASGITransport on an
in-memory SQLite database; client-side code talks to it exactly as it would
over the network.
"""
import os
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set testing environment
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["SESSION_STORAGE_PATH"] = ""

from alumni_connect.main import app
from alumni_connect.db.base import Base
from alumni_connect.db.session import get_db
from alumni_connect.client.data_service import DataServiceClient
from alumni_connect.client.session_store import SessionStore
from alumni_connect.core.security import get_password_hash
from alumni_connect.models import AuthUser, Profile

BASE_URL = "http://test/api/v1"
PASSWORD = "password123"

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture
def database():
    """Fresh schema per test; yields the session factory."""
    Base.metadata.create_all(bind=test_engine)
    yield TestSessionLocal
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def transport(database) -> ASGITransport:
    """ASGI transport into the data service with the test database wired in."""
    async def override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield ASGITransport(app=app)
    app.dependency_overrides.clear()


@pytest.fixture
async def http(transport) -> AsyncGenerator[AsyncClient, None]:
    """Raw HTTP client for exercising the service API directly."""
    async with AsyncClient(transport=transport, base_url=BASE_URL) as ac:
        yield ac


@pytest.fixture
async def client(transport) -> AsyncGenerator[DataServiceClient, None]:
    async with DataServiceClient(BASE_URL, transport=transport) as data_client:
        yield data_client


@pytest.fixture
async def store(client) -> AsyncGenerator[SessionStore, None]:
    """A restored (anonymous) session store."""
    session_store = SessionStore(client)
    await session_store.restore_session()
    yield session_store
    await session_store.close()


@pytest.fixture
def make_account(database):
    """Create an identity (and, by default, its profile) directly in the database."""
    def _make_account(
        email: str,
        role: Optional[str] = "alumni",
        full_name: str = "Test User",
        is_approved: Optional[bool] = None,
        **profile_fields,
    ) -> str:
        with database() as db:
            user = AuthUser(email=email, hashed_password=get_password_hash(PASSWORD))
            db.add(user)
            db.flush()
            if role is not None:
                db.add(
                    Profile(
                        user_id=user.id,
                        email=email,
                        full_name=full_name,
                        role=role,
                        is_approved=(role != "alumni") if is_approved is None else is_approved,
                        **profile_fields,
                    )
                )
            db.commit()
            return user.id

    return _make_account


@pytest.fixture
async def signed_in(transport, make_account):
    """Factory for extra, independently signed-in stores (one client each)."""
    opened = []

    async def _signed_in(email: str, role: Optional[str] = "alumni", **fields) -> SessionStore:
        make_account(email, role=role, **fields)
        session_store = SessionStore(DataServiceClient(BASE_URL, transport=transport))
        await session_store.restore_session()
        await session_store.sign_in(email, PASSWORD)
        opened.append(session_store)
        return session_store

    yield _signed_in

    for session_store in opened:
        await session_store.close()
        await session_store.client.close()


@pytest.fixture
async def admin_store(signed_in) -> SessionStore:
    return await signed_in("admin@example.com", role="admin", full_name="Site Admin")
