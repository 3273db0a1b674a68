"""Alembic environment for the `alembic` CLI.

The server itself migrates through ``marias.db.engine.init_db``; this file is
only used when running ``alembic upgrade`` / ``alembic revision`` by hand.
"""

from __future__ import annotations

import asyncio

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

from marias.config import Config
from marias.db.models import Base


def _database_url() -> str:
    """Prefer an explicit sqlalchemy.url, else DATABASE_URL / .env."""
    explicit = context.config.get_main_option("sqlalchemy.url")
    return explicit or Config.from_env().database_url


def _migrate(**options) -> None:
    # render_as_batch: SQLite cannot ALTER most columns in place
    context.configure(target_metadata=Base.metadata, render_as_batch=True, **options)
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_online(url: str) -> None:
    engine = create_async_engine(url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as conn:
            await conn.run_sync(
                lambda sync_conn: _migrate(connection=sync_conn, compare_type=True)
            )
    finally:
        await engine.dispose()


if context.is_offline_mode():
    _migrate(
        url=_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
else:
    asyncio.run(_migrate_online(_database_url()))
