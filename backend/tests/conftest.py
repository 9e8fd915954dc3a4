"""Pytest configuration and fixtures for FretMarine tests.

Each test gets its own database: a throwaway SQLite file through
aiosqlite by default, or whatever TEST_DATABASE_URL points at (e.g. a
PostgreSQL test database) with all tables dropped and recreated.
"""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fretmarine.database import Base, get_db
from fretmarine.main import app
from fretmarine.models.cargo_item import CargoItem
from fretmarine.models.client import Client
from fretmarine.models.container import Container
from fretmarine.routers.deps import get_facade
from fretmarine.schemas.cargo_item import CargoItemCreate
from fretmarine.schemas.client import ClientCreate
from fretmarine.schemas.container import ContainerCreate
from fretmarine.services import intake
from fretmarine.services.events import EventBus, OperationEvent
from fretmarine.services.facade import ReconciliationFacade


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a fresh test database engine."""
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'fretmarine_test.db'}"
    engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for direct service-level tests (caller commits)."""
    async with session_factory() as session:
        yield session


# ── Engine Fixtures ──────────────────────────────────────────────

class EventRecorder:
    """Subscriber that keeps every delivered event."""

    def __init__(self):
        self.events: list[OperationEvent] = []

    async def __call__(self, event: OperationEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [e.kind for e in self.events]


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def facade(session_factory, recorder) -> ReconciliationFacade:
    return ReconciliationFacade(
        session_factory,
        cache=None,
        events=EventBus([recorder]),
        timeout=10.0,
    )


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest.fixture
def make_client(session_factory):
    """Factory: create and commit a client."""
    async def _make(name: str = "Diallo", **overrides) -> Client:
        async with session_factory() as db:
            client = await intake.create_client(
                ClientCreate(name=name, **overrides), "test-actor", db
            )
            await db.commit()
            return client

    return _make


@pytest.fixture
def make_container(session_factory):
    """Factory: create and commit an empty container."""
    async def _make(**overrides) -> Container:
        fields = {
            "destination_port": "Abidjan",
            "destination_country": "CI",
            "capacity_weight_kg": 1000.0,
            "capacity_volume_m3": 0.0,
        }
        fields.update(overrides)
        async with session_factory() as db:
            container = await intake.create_container(
                ContainerCreate(**fields), "test-actor", db
            )
            await db.commit()
            return container

    return _make


@pytest.fixture
def make_item(session_factory):
    """Factory: create and commit a received cargo item."""
    async def _make(client_id: str, weight_kg: float | None = 100.0, **overrides) -> CargoItem:
        fields = {
            "client_id": client_id,
            "designation": "Carton of household goods",
            "weight_kg": weight_kg,
            "cost_transport": 100.0,
        }
        fields.update(overrides)
        async with session_factory() as db:
            item = await intake.create_cargo_item(
                CargoItemCreate(**fields), "test-actor", db
            )
            await db.commit()
            return item

    return _make


@pytest.fixture
def fetch(session_factory):
    """Re-read an entity by primary key in a fresh session."""
    async def _fetch(model, entity_id: str):
        async with session_factory() as db:
            return await db.get(model, entity_id)

    return _fetch


# ── HTTP Client ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(session_factory, facade) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the database and facade dependencies overridden."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_facade():
        return facade

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_facade] = override_get_facade

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def actor_headers(role: str = "admin", actor_id: str = "user-1") -> dict:
    return {"X-Actor-Id": actor_id, "X-Actor-Role": role}


@pytest.fixture
def headers_for():
    """Factory: identity headers for a role."""
    return actor_headers


@pytest.fixture
def admin_headers() -> dict:
    return actor_headers("admin")


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
    config.addinivalue_line("markers", "cache: Cache tests")
    config.addinivalue_line("markers", "slow: Slow tests")
