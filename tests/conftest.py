"""
Pytest configuration and fixtures.

Unit tests need no services: database sessions and the LLM are mocked.
Tests marked `integration` need PostgreSQL with pgvector at DATABASE_URL and
only run with --run-integration.
"""

import uuid
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import bookmark_hub.models  # noqa: F401
from bookmark_hub.core.config import settings
from bookmark_hub.db.base import Base


# ================================
# Pytest Configuration
# ================================

def pytest_addoption(parser):
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="run tests that need a PostgreSQL database",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(reason="needs --run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)

@pytest.fixture
def fake_db():
    """Mocked AsyncSession."""
    return AsyncMock(name="db")


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


# ================================
# Database Fixtures
# ================================

@pytest_asyncio.fixture
async def test_engine():
    """
    Engine on DATABASE_URL with a freshly created schema.

    NullPool disables connection pooling for tests.
    """
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"'))
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_connection(test_engine):
    """Connection inside an outer transaction that is rolled back after the test."""
    connection = await test_engine.connect()
    transaction = await connection.begin()

    yield connection

    await transaction.rollback()
    await connection.close()


@pytest_asyncio.fixture
async def session_factory(db_connection) -> async_sessionmaker[AsyncSession]:
    """Sessions whose commits only release a savepoint of the outer transaction."""
    return async_sessionmaker(
        bind=db_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
