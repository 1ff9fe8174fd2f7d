"""Shared fixtures for integration tests — a file-backed SQLite database per test."""

from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from retrieval_engine.infrastructure.database.base import Base
from retrieval_engine.infrastructure.database.models import ChunkModel, DocumentModel, IngestionJobModel  # noqa: F401
from retrieval_engine.infrastructure.storage.local_file_storage import LocalFileStorage


@pytest_asyncio.fixture
async def engine(tmp_path: Path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'retrieval_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def blob_storage(tmp_path: Path) -> LocalFileStorage:
    return LocalFileStorage(str(tmp_path / "uploads"))
