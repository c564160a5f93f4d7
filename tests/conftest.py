"""
Pytest configuration for all tests.
Points the app at a throwaway SQLite database and disables Redis before the
application modules are imported.
"""

import asyncio
import os
import tempfile
from pathlib import Path

# Set environment variables BEFORE any app imports
_tmp_dir = tempfile.TemporaryDirectory()
os.environ["DATABASE_URI"] = f"sqlite+aiosqlite:///{Path(_tmp_dir.name) / 'orbit.db'}"
os.environ["REDIS_ENABLED"] = "false"
os.environ["INIT_DB_ON_STARTUP"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.pop("LOG_FILE", None)

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from main import app
from orbit.core.security import create_access_token
from orbit.crud.profile import create_profile
from orbit.db.base_class import Base
from orbit.db.session import get_session_factory
from orbit.models import ProfileRole
from orbit.schemas import ProfileCreate

FIRE_REPORT = {
    "type": "FIRE",
    "severity": "high",
    "lat": 25.6,
    "lng": 85.1,
    "description": "Warehouse fire near the river bank",
    "media_url": "https://storage.example.org/incident-media/reports/live-1.jpg",
}


def _sqlite_engine(path: Path):
    # NullPool: no connection outlives the event loop that opened it
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)


@pytest.fixture
def session_factory(tmp_path):
    """Session factory over a fresh database with all tables created."""
    engine = _sqlite_engine(tmp_path / "test.db")

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    yield async_sessionmaker(engine, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = _sqlite_engine(tmp_path / "async.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(db_engine):
    async with async_sessionmaker(db_engine, expire_on_commit=False)() as session:
        yield session


@pytest.fixture
def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_profile(session_factory, email: str, role: ProfileRole, password: str = "Passw0rdOk"):
    async def create():
        async with session_factory() as session:
            return await create_profile(
                session, ProfileCreate(email=email, password=password), role=role
            )

    return asyncio.run(create())


@pytest.fixture
def officer(session_factory):
    return make_profile(session_factory, "officer@orbit-dispatch.org", ProfileRole.OFFICER)


@pytest.fixture
def officer_headers(officer):
    return {"Authorization": f"Bearer {create_access_token(officer.id)}"}


@pytest.fixture
def citizen_headers(session_factory):
    citizen = make_profile(session_factory, "citizen@orbit-dispatch.org", ProfileRole.CITIZEN)
    return {"Authorization": f"Bearer {create_access_token(citizen.id)}"}
