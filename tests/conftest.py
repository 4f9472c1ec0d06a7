"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fletes.config import get_settings
from fletes.main import app
from fletes.models.driver import Driver, DriverCreate
from fletes.models.job import Job, JobStatus, Location
from fletes.services import (
    DriverService,
    JobService,
    LocationService,
    RateService,
    ReportService,
)
from fletes.state.jobs import JobRepository
from fletes.state.locks import KeyedLock
from fletes.state.manager import StateManager, set_state_manager


class FakeRedis:
    """In-memory stand-in for the async Redis client used by StateManager."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.sets: dict[str, set[str]] = {}
        self.published: list[tuple[str, str]] = []
        self.fail_writes = False

    def _check_write(self) -> None:
        if self.fail_writes:
            raise ConnectionError("redis unavailable")

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: Any) -> bool:
        self._check_write()
        self.values[key] = str(value)
        return True

    async def mget(self, keys: list[str]) -> list[str | None]:
        return [self.values.get(key) for key in keys]

    async def delete(self, *keys: str) -> int:
        self._check_write()
        removed = 0
        for key in keys:
            for store in (self.values, self.hashes, self.sets):
                if key in store:
                    del store[key]
                    removed += 1
        return removed

    async def exists(self, *keys: str) -> int:
        return sum(
            1 for key in keys if key in self.values or key in self.hashes or key in self.sets
        )

    async def hset(self, key: str, field: str, value: Any) -> int:
        self._check_write()
        self.hashes.setdefault(key, {})[field] = str(value)
        return 1

    async def hdel(self, key: str, *fields: str) -> int:
        self._check_write()
        data = self.hashes.get(key, {})
        removed = sum(1 for field in fields if data.pop(field, None) is not None)
        if key in self.hashes and not data:
            del self.hashes[key]
        return removed

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self.hashes.get(key, {}))

    async def sadd(self, key: str, *members: str) -> int:
        self._check_write()
        self.sets.setdefault(key, set()).update(members)
        return len(members)

    async def srem(self, key: str, *members: str) -> int:
        self._check_write()
        data = self.sets.get(key, set())
        removed = len(data.intersection(members))
        data.difference_update(members)
        if key in self.sets and not data:
            del self.sets[key]
        return removed

    async def smembers(self, key: str) -> set[str]:
        return set(self.sets.get(key, set()))

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 0


class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# La Plata, Buenos Aires
PICKUP = Location(address="Calle 7 1200, La Plata", lat=-34.9205, lng=-57.9536)
DROPOFF = Location(address="Calle 50 800, La Plata", lat=-34.9314, lng=-57.9489)
EXTRA_STOP = Location(address="Plaza Moreno, La Plata", lat=-34.9214, lng=-57.9545)


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Create an empty in-memory Redis."""
    return FakeRedis()


@pytest_asyncio.fixture
async def state_manager(fake_redis: FakeRedis) -> AsyncGenerator[StateManager, None]:
    """Create a test state manager."""
    manager = StateManager(client=fake_redis)
    yield manager
    await manager.disconnect()


@pytest.fixture
def clock() -> FrozenClock:
    """Create a clock frozen at noon UTC."""
    return FrozenClock(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def locks() -> KeyedLock:
    """Create a fresh job lock registry."""
    return KeyedLock()


@pytest.fixture
def job_service(state_manager: StateManager, locks: KeyedLock, clock: FrozenClock) -> JobService:
    """Create a test job service."""
    return JobService(state_manager, locks=locks, clock=clock)


@pytest.fixture
def location_service(
    state_manager: StateManager,
    locks: KeyedLock,
    clock: FrozenClock,
) -> LocationService:
    """Create a test location service."""
    return LocationService(state_manager, locks=locks, clock=clock, settings=get_settings())


@pytest.fixture
def driver_service(
    state_manager: StateManager,
    locks: KeyedLock,
    clock: FrozenClock,
) -> DriverService:
    """Create a test driver service."""
    return DriverService(state_manager, locks=locks, clock=clock)


@pytest.fixture
def rate_service(state_manager: StateManager) -> RateService:
    """Create a test rate service."""
    return RateService(state_manager)


@pytest.fixture
def report_service(state_manager: StateManager) -> ReportService:
    """Create a test report service."""
    return ReportService(state_manager)


@pytest_asyncio.fixture
async def test_client(state_manager: StateManager) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client backed by the in-memory store."""
    set_state_manager(state_manager)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    set_state_manager(None)


# Sample data fixtures


@pytest.fixture
def make_job() -> Callable[..., Job]:
    """Build jobs with a La Plata route."""

    def factory(**overrides: Any) -> Job:
        data: dict[str, Any] = {
            "client_name": "Ferretería San Martín",
            "pickup": PICKUP,
            "dropoff": DROPOFF,
            "status": JobStatus.PENDING,
        }
        data.update(overrides)
        return Job(**data)

    return factory


@pytest_asyncio.fixture
async def sample_driver(driver_service: DriverService) -> Driver:
    """Create a stored driver."""
    return await driver_service.create_driver(
        DriverCreate(name="Juan Pérez", code="juan1", phone="+54 221 555 0101")
    )


@pytest_asyncio.fixture
async def stored_job(
    state_manager: StateManager,
    make_job: Callable[..., Job],
    sample_driver: Driver,
) -> Callable[..., Awaitable[Job]]:
    """Store a job assigned to the sample driver and return it."""
    repository = JobRepository(state_manager)

    async def factory(**overrides: Any) -> Job:
        overrides.setdefault("driver_id", sample_driver.id)
        return await repository.save(make_job(**overrides))

    return factory
