"""
Pytest fixtures for all tests.

Provides:
- A file-backed SQLite database per test (transactions begin IMMEDIATE, so
  concurrent writers serialize the way row locks would in PostgreSQL)
- An application whose ``app.state`` points at the test database
- Identity tokens and authenticated clients
- Factory-built organizations and plans
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.database import DatabaseManager
from app.core.orgname_cache import OrgnameCache
from app.core.security import create_access_token
from app.main import create_application
from app.models import Organization, Plan
from tests.factories import (
    OTHER_USER_ID,
    OWNER_EMAIL,
    OWNER_ID,
    OrganizationFactory,
    PlanFactory,
)

@pytest_asyncio.fixture
async def db_manager(tmp_path) -> AsyncGenerator[DatabaseManager, None]:
    """
    Create a test database and manager.

    Uses NullPool so every session gets its own connection.
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = create_async_engine(
        url,
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    manager = DatabaseManager(url)
    manager.attach(engine)
    await manager.create_all()

    yield manager

    await manager.close()


@pytest_asyncio.fixture
async def db_session(db_manager: DatabaseManager) -> AsyncGenerator[AsyncSession, None]:
    """
    Session for direct service tests.

    Do not keep it inside an open transaction while the API or another
    session writes: SQLite allows a single writer.
    """
    async with db_manager.session() as session:
        yield session


@pytest.fixture
def orgname_cache() -> OrgnameCache:
    return OrgnameCache(ttl_seconds=60, max_size=100, sweep_interval=60)


@pytest_asyncio.fixture
async def app(db_manager: DatabaseManager, orgname_cache: OrgnameCache):
    """
    Create FastAPI test application.

    Redis is never initialized, so rate limiting fails open and the plan
    catalog is read from the database.
    """
    application = create_application()
    application.state.db = db_manager
    application.state.orgname_cache = orgname_cache
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    Create async HTTP client for testing API endpoints.

    Usage:
        async def test_endpoint(client):
            response = await client.get("/api/v1/plans")
            assert response.status_code == 200
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def owner_token() -> str:
    return create_access_token(subject=OWNER_ID, email=OWNER_EMAIL)


@pytest.fixture
def other_token() -> str:
    return create_access_token(subject=OTHER_USER_ID, email="someone@example.com")


@pytest.fixture
def owner_headers(owner_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {owner_token}"}


@pytest.fixture
def other_headers(other_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {other_token}"}


# Test data
@pytest_asyncio.fixture
async def pending_verification_org(db_manager: DatabaseManager) -> Organization:
    """Organization right after phase 1, with token ``"a" * 64``."""
    async with db_manager.session() as session:
        return await OrganizationFactory.create(session, owner_id=OWNER_ID)


@pytest_asyncio.fixture
async def verified_org(db_manager: DatabaseManager) -> Organization:
    """Organization right after phase 2."""
    async with db_manager.session() as session:
        return await OrganizationFactory.create_verified(session, owner_id=OWNER_ID)


@pytest_asyncio.fixture
async def monthly_plan(db_manager: DatabaseManager) -> Plan:
    async with db_manager.session() as session:
        return await PlanFactory.create(session, name="Starter", price=999, billing_cycle="monthly")


@pytest_asyncio.fixture
async def subscribed_org(db_manager: DatabaseManager, monthly_plan: Plan) -> Organization:
    """Active organization ``acme`` with an active subscription."""
    async with db_manager.session() as session:
        return await OrganizationFactory.create_active(
            session,
            orgname="acme",
            owner_id=OWNER_ID,
            plan=monthly_plan,
        )


@pytest_asyncio.fixture
async def unsubscribed_org(db_manager: DatabaseManager) -> Organization:
    """Active organization ``globex`` without a subscription."""
    async with db_manager.session() as session:
        return await OrganizationFactory.create_active(session, orgname="globex", owner_id=OWNER_ID)
