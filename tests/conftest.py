"""Shared fixtures: a throwaway SQLite database per test and an HTTP client."""

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import fleetbook.models  # noqa: F401
from fleetbook.database import Base, get_db
from fleetbook.main import create_application
from fleetbook.schemas.booking import BookingCreate
from fleetbook.services.booking_service import BookingService
from fleetbook.services.booking_store import BookingStore
from fleetbook.utils.validators import now_local


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def service() -> BookingService:
    return BookingService()


@pytest.fixture
def at() -> Callable[..., datetime]:
    """Naive local timestamp ``days`` from today at ``hour:minute``."""

    def _at(hour: int, minute: int = 0, days: int = 1) -> datetime:
        midnight = now_local().replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight + timedelta(days=days, hours=hour, minutes=minute)

    return _at


@pytest.fixture
def draft() -> Callable[..., BookingCreate]:
    def _draft(start: datetime, end: datetime, vehicle_id: str = "veh-1", **fields) -> BookingCreate:
        return BookingCreate(
            user_id=fields.pop("user_id", "user-1"),
            vehicle_id=vehicle_id,
            start_date=start,
            end_date=end,
            **fields,
        )

    return _draft


@pytest.fixture
async def app(session_factory):
    app = create_application()

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class FailingStore(BookingStore):
    """Store whose driver lookup always hits a database error."""

    async def list_by_driver(self, db, driver_id):
        raise OperationalError("SELECT * FROM bookings", {}, Exception("database is locked"))


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()
