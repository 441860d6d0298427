"""Alembic environment: hand-written revisions applied over asyncpg.

The URL comes from ``storage.postgres.dsn`` in settings, then
TOOLGATE_DATABASE_URL / DATABASE_URL, then ``sqlalchemy.url`` in alembic.ini.
"""

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from toolgate.config import get_settings

VERSION_TABLE = "toolgate_schema_version"

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def asyncpg_url(url: str) -> str:
    for scheme in ("postgresql://", "postgres://"):
        if url.startswith(scheme):
            return "postgresql+asyncpg://" + url[len(scheme):]
    return url


def resolve_url() -> str:
    url = (
        get_settings().storage.postgres.dsn
        or os.environ.get("TOOLGATE_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or config.get_main_option("sqlalchemy.url", "")
    )
    return asyncpg_url(url)


def _configure(**kwargs: object) -> None:
    context.configure(target_metadata=None, version_table=VERSION_TABLE, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


def run_offline() -> None:
    """Print the SQL instead of executing it (``alembic upgrade --sql``)."""
    _configure(url=resolve_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})


def _run_on(connection: Connection) -> None:
    _configure(connection=connection)


async def run_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = resolve_url()
    engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_on)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
