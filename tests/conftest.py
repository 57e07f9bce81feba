"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from core.config import Settings
from db.session import build_engine, build_session_factory
from models.base import Base
from services.analysis_service import AnalysisOrchestrator
from services.entity_reconciler import EntityReconciler

USE_POSTGRES = os.environ.get("TEST_POSTGRES", "").lower() in ("1", "true", "yes")


class StubAnalysisClient:
    """
    Stand-in for AnalysisServiceClient that replays scripted responses.

    Each call consumes the next item: strings are returned as the generated text,
    exceptions are raised. Calls are recorded for assertions.
    """

    def __init__(self, *responses: str | Exception) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    async def complete(
        self,
        messages: list[dict[str, str]],
        temperature: float,
        timeout: float,  # noqa: ASYNC109
    ) -> str:
        self.calls.append({"messages": messages, "temperature": temperature, "timeout": timeout})
        if not self.responses:
            raise AssertionError("StubAnalysisClient received an unexpected call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self) -> None:
        pass


@pytest.fixture(scope="session")
def postgres_container() -> Generator:
    """Start a PostgreSQL container for the test session (only with TEST_POSTGRES=1)."""
    from testcontainers.postgres import PostgresContainer  # noqa: PLC0415

    with PostgresContainer("postgres:16", driver="asyncpg") as postgres:
        yield postgres


@pytest.fixture
def database_url(request: pytest.FixtureRequest, tmp_path: Path) -> str:
    """
    Database URL for one test.

    A fresh SQLite file per test by default; the shared PostgreSQL container when
    TEST_POSTGRES is set.
    """
    if USE_POSTGRES:
        return request.getfixturevalue("postgres_container").get_connection_url()
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def test_settings(database_url: str) -> Settings:
    """Settings isolated from the environment and any local .env file."""
    return Settings(_env_file=None, database_url=database_url)


@pytest.fixture
async def async_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine with an empty schema."""
    engine = build_engine(test_settings)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory for independent sessions.

    Sessions commit for real, as they do in the ingestion pipeline; each test gets
    a fresh schema instead of a rolled-back transaction.
    """
    return build_session_factory(async_engine)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """A session for arranging data and asserting on it."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def stub_client() -> StubAnalysisClient:
    """Analysis client with no scripted responses; tests append to `responses`."""
    return StubAnalysisClient()


@pytest.fixture
def orchestrator(stub_client: StubAnalysisClient) -> AnalysisOrchestrator:
    """Single-pass orchestrator backed by the stub client."""
    return AnalysisOrchestrator(stub_client, stage_timeout=5.0)  # type: ignore[arg-type]


@pytest.fixture
def reconciler(session_factory: async_sessionmaker[AsyncSession]) -> EntityReconciler:
    """Entity reconciler over the test database."""
    return EntityReconciler(session_factory)


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    orchestrator: AnalysisOrchestrator,
    reconciler: EntityReconciler,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client wired to the test database and the stub analysis client."""
    from api.dependencies import get_orchestrator, get_reconciler  # noqa: PLC0415
    from api.main import app  # noqa: PLC0415
    from db.session import get_async_session, get_session_factory  # noqa: PLC0415

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_reconciler] = lambda: reconciler

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
