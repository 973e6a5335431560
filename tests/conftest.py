"""
Shared fixtures.

Each test gets its own SQLite file so sessions can be opened concurrently
against the same database.
"""

from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from racetrack.db.session import get_async_db, init_db
from racetrack.features.races import RaceService
from racetrack.features.races.schemas import RaceCreate
from racetrack.features.users import UserCreate, UserService
from racetrack.main import app


# Start (43.0, 76.0) to end (43.0899, 76.0): just under 10 km
TEN_KM_ROUTE = {
    "startPoint": {"latitude": 43.0, "longitude": 76.0, "address": "Start"},
    "endPoint": {"latitude": 43.0899, "longitude": 76.0, "address": "Finish"},
}

NOW = datetime(2024, 6, 10, 12, 0, 0)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'racetrack_test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db):
    """Factory: create and commit a user."""
    async def _make(name: str, email: str | None = None):
        return await UserService(db).create_user(UserCreate(name=name, email=email))
    return _make


@pytest.fixture
def make_race(db):
    """Factory: create a ~10 km race whose window contains NOW."""
    async def _make(name: str = "Spring 10K", start=None, end=None, route=None):
        data = RaceCreate(
            name=name,
            startDate=start or NOW - timedelta(days=1),
            endDate=end or NOW + timedelta(days=7),
            **(route or TEN_KM_ROUTE),
        )
        return await RaceService(db).create_race(data, now=NOW - timedelta(days=2))
    return _make


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client bound to the app with the test database."""
    async def override_get_async_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_async_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
