"""
Alembic Migration Environment

1. Load settings (DATABASE_URL, asyncpg driver)
2. Import every model so Base.metadata knows all tables
3. Run migrations offline (emit SQL) or online (async connection)
"""

import asyncio
import sys
from logging.config import fileConfig
from pathlib import Path

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

# Make the bookmark_hub package importable when running `alembic` from the repo root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from bookmark_hub.core.config import settings
from bookmark_hub.db.base import Base

# Registers every table on Base.metadata
from bookmark_hub.models import (  # noqa: F401
    Bookmark,
    BookmarkChunk,
    BookmarkTask,
    RagSession,
)

# ================================
# Alembic Config Object
# ================================

config = context.config

# The URL always comes from settings, never from alembic.ini
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to):
    """Skip objects created by raw SQL in migrations (HNSW index)."""
    if type_ == "index" and name == "ix_bookmark_chunk_embedding_hnsw":
        return False
    return True


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting to the database."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations over an asyncpg connection."""
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,  # Don't use connection pooling for migrations
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
