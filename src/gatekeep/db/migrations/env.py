"""Alembic environment for the credential store.

The database URL comes from GATEKEEP_DATABASE_URL through settings; it
can be overridden per run with ``alembic -x db_url=... upgrade head``.
Logging goes through the same structlog setup as the service.

SQLite targets run in batch mode because SQLite cannot ALTER a table
in place, which matters for the unique constraint on users.username.
"""

import asyncio

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

from gatekeep.config import settings
from gatekeep.db.models import Base
from gatekeep.log import configure_logging

configure_logging(settings)

target_metadata = Base.metadata


def _database_url() -> str:
    return context.get_x_argument(as_dictionary=True).get(
        "db_url", settings.database_url
    )


def _configure(**kwargs) -> None:
    url = _database_url()
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit the SQL script without connecting."""
    _configure(
        url=_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(_database_url(), poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
