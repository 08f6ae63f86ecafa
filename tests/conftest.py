"""Shared test fixtures for the source database, job store, and settings."""

from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable
from pathlib import Path

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from batch_export.core.config import Settings
from batch_export.models.base import Base

USERS_DDL = "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT, active INTEGER DEFAULT 1)"


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Directory the export writes into (not created up front)."""
    return tmp_path / "target"


@pytest.fixture
def settings(tmp_path: Path, output_dir: Path) -> Settings:
    """Test application settings backed by a file-based SQLite database."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'export.db'}",
        batch_base_query="SELECT id, name, email FROM users",
        batch_chunk_size=5,
        batch_page_size=3,
        output_directory=str(output_dir),
        output_filename_pattern="export_{timestamp}.tsv",
    )


@pytest.fixture
async def async_engine(settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a file-based async SQLite engine holding users and job_executions.

    A file database lets the background job and the test share data
    across separate connections.
    """
    engine = create_async_engine(settings.database_url, echo=False)

    async with engine.begin() as conn:
        await conn.execute(text(USERS_DDL))
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory over the test engine."""
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Create a per-test async session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def insert_users(async_engine: AsyncEngine) -> Callable[..., Awaitable[None]]:
    """Return a helper inserting (id, name, email) rows into the users table."""

    async def _insert(rows: Iterable[tuple[int, str, str | None]], *, active: int = 1) -> None:
        async with async_engine.begin() as conn:
            await conn.execute(
                text("INSERT INTO users (id, name, email, active) VALUES (:id, :name, :email, :active)"),
                [{"id": i, "name": n, "email": e, "active": active} for i, n, e in rows],
            )

    return _insert


@pytest.fixture
def seed_users(insert_users: Callable[..., Awaitable[None]]) -> Callable[[int], Awaitable[None]]:
    """Return a helper inserting ``count`` users with ids 1..count."""

    async def _seed(count: int) -> None:
        if count:
            await insert_users((i, f"user{i}", f"user{i}@example.com") for i in range(1, count + 1))

    return _seed
