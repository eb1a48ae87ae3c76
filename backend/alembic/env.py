"""
Alembic environment for the keygate schema.

The database URL is resolved in this order:
  1. `alembic -x url=...` on the command line
  2. DATABASE_URL from keygate settings

Online runs go through keygate's own build_engine, so SQLite migrations get
the same foreign-key and BEGIN IMMEDIATE setup as the running service.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.pool import NullPool

from keygate.core.config import settings
from keygate.core.database import Base, build_engine

# Every table must be registered on Base.metadata before autogenerate runs.
import keygate.models.api_key  # noqa: F401
import keygate.models.client  # noqa: F401
import keygate.models.quota_counter  # noqa: F401
import keygate.models.usage  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _database_url() -> str:
    return context.get_x_argument(as_dictionary=True).get("url") or settings.DATABASE_URL


def _options(dialect_name: str) -> dict:
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        # SQLite rebuilds tables instead of altering constraints
        "render_as_batch": dialect_name == "sqlite",
    }


def run_offline(url: str) -> None:
    """Emit SQL to stdout without connecting."""
    dialect_name = url.split(":", 1)[0].split("+", 1)[0]
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_options(dialect_name),
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection) -> None:  # type: ignore[no-untyped-def]
    context.configure(connection=connection, **_options(connection.dialect.name))
    with context.begin_transaction():
        context.run_migrations()


async def run_online(url: str) -> None:
    migration_engine = build_engine(url, poolclass=NullPool)
    try:
        async with migration_engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await migration_engine.dispose()


if context.is_offline_mode():
    run_offline(_database_url())
else:
    asyncio.run(run_online(_database_url()))
