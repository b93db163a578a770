"""Alembic environment for the version store, version index and purge audit tables.

Migrations are plain SQL in versions/, so there is no metadata to
autogenerate from. The DSN is resolved the same way as the application
pool, with alembic.ini's sqlalchemy.url as the last resort.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from orderledger.db.pool import resolve_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def migration_url() -> str:
    """DSN rewritten for SQLAlchemy's asyncpg dialect."""
    url = resolve_database_url(fallback=config.get_main_option("sqlalchemy.url"))
    scheme, sep, rest = url.partition("://")
    if scheme in ("postgres", "postgresql"):
        return f"postgresql+asyncpg{sep}{rest}"
    return url


def configure(**kwargs) -> None:
    context.configure(target_metadata=None, transaction_per_migration=True, **kwargs)


def run_offline() -> None:
    """Print the SQL for `alembic upgrade --sql`."""
    configure(url=migration_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection: Connection) -> None:
    configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_online() -> None:
    options = config.get_section(config.config_ini_section, {})
    options["sqlalchemy.url"] = migration_url()
    engine = async_engine_from_config(options, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
