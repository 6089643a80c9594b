import os

# Must be set before carmarket.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["IMGBB_API_KEY"] = "test-key"
os.environ["AUTH_SECRET_KEY"] = "test-secret"

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from carmarket.db import crud
from carmarket.db import models  # noqa: F401  registers the tables
from carmarket.db.database import Base
from carmarket.services.storage import LocalStorage

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine():
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
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "local_storage.json")


async def add_car(db, images=(), minutes=0, **fields) -> str:
    data = {
        "brand": "BMW",
        "model": "320i",
        "price": 10000,
        "currency": "STG",
        "status": "published",
        "created_at": BASE_TIME + timedelta(minutes=minutes),
    }
    data.update(fields)
    car_id = await crud.insert_car(db, data)
    if images:
        await crud.insert_car_images(db, car_id, list(images))
    return car_id


@pytest.fixture
async def scenario_cars(db):
    """Listings A, B and C from the moderation walkthrough."""
    a = await add_car(db, brand="BMW", model="320i", price=10000, currency="STG", status="published", minutes=1)
    b = await add_car(db, brand="Audi", model="A4", price=15000, currency="EUR", status="published", minutes=2)
    c = await add_car(db, brand="BMW", model="118d", price=5000, currency="STG", status="pending_approval", minutes=3)
    return {"A": a, "B": b, "C": c}


@pytest.fixture
async def client(session_maker, storage):
    from carmarket.db.database import get_db
    from carmarket.main import app
    from carmarket.services.currency import ExchangeRateTable, RateSnapshot

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.storage = storage
    app.state.rates = RateSnapshot(table=ExchangeRateTable())

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from carmarket.auth import create_token
    from carmarket.config import settings
    return {"Authorization": f"Bearer {create_token(settings.AUTH_EMAIL)}"}
