"""Shared fixtures: in-memory database, users, and a fake tool server."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cybertrace.database import Base
from cybertrace.models import User
from helpers import FakeToolClient, add_user

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(TEST_DATABASE_URL, echo=False)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session():
    """Create a fresh database session for each test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Session factory over a temporary SQLite file, for tests that open several sessions."""
    file_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cybertrace.db'}")
    async with file_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)

    await file_engine.dispose()


@pytest_asyncio.fixture
async def alice(db_session: AsyncSession) -> User:
    return await add_user(db_session, "alice")


@pytest_asyncio.fixture
async def bob(db_session: AsyncSession) -> User:
    return await add_user(db_session, "bob")


@pytest.fixture
def fake_tool_client() -> FakeToolClient:
    return FakeToolClient({"run_suzieq_show": '[{"hostname": "leaf01", "state": "NotEstd"}]'})
