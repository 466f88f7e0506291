"""
alembic/env.py

Alembic environment configuration for database migrations.
- Supports both offline and asynchronous online migration contexts.
- Targets the metadata of every model registered in fixlink.database.models.
"""

import asyncio
from logging.config import fileConfig

from alembic import context

from fixlink.core.config import settings
from fixlink.database.base import Base
from fixlink.database.session import build_engine

# --- Import models to ensure they are registered with SQLAlchemy and visible to Alembic ---
from fixlink.database import models  # noqa: F401

# --- Alembic config and logger ---
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """
    Run migrations in 'offline' mode (no DB connection needed).
    """
    context.configure(
        url=settings.DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """
    Run migrations in 'online' mode using the async engine.
    """
    engine = build_engine(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(
            lambda sync_conn: context.configure(
                connection=sync_conn,
                target_metadata=target_metadata,
                compare_type=True,
            )
        )
        await conn.run_sync(lambda sync_conn: context.run_migrations())
    await engine.dispose()


# --- Entry point ---
if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
