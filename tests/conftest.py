from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from jobqueue.config.settings import Settings, get_settings
from jobqueue.core.registries import JobRegistry
from jobqueue.infra.database import Base, get_session
from jobqueue.jobs import models  # noqa: F401
from jobqueue.jobs.dispatcher import JobDispatcher
from jobqueue.jobs.routes import get_dispatcher, get_store
from jobqueue.jobs.store import SqlAlchemyJobStore
from sample_jobs import ALL_SAMPLE_JOBS, reset_sample_jobs


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 5, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def _reset_sample_jobs():
    reset_sample_jobs()
    yield
    reset_sample_jobs()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}"


@pytest.fixture
def test_settings(database_url) -> Settings:
    return Settings(database_url=database_url, job_process_limit=10)


@pytest.fixture
async def test_engine(database_url):
    """Create a test database engine with the jobs table."""
    engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest.fixture
def store(session_factory, clock) -> SqlAlchemyJobStore:
    return SqlAlchemyJobStore(session_factory, clock=clock)


@pytest.fixture
def registry() -> JobRegistry:
    """Registry holding only the test jobs."""
    registry = JobRegistry()
    for job_class in ALL_SAMPLE_JOBS:
        registry.register_job(job_class)
    return registry


@pytest.fixture
def dispatcher(store, registry, test_settings, clock) -> JobDispatcher:
    return JobDispatcher(store, registry, test_settings, clock=clock)


@pytest.fixture
def app(store, dispatcher, session_factory, test_settings):
    """Create the FastAPI application wired to the test database."""
    from jobqueue.main import create_app

    app = create_app()

    async def _test_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_session] = _test_session
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
