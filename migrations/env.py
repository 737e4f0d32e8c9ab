from __future__ import annotations

import asyncio
import logging
import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine.url import make_url

# --- Ensure src/ on sys.path when running from a checkout ---
ROOT = Path(__file__).resolve().parents[1]  # migrations/ -> project root
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from docrecon.app.core.logging import setup_logging  # noqa: E402
from docrecon.db.base import Base  # noqa: E402
from docrecon.db.settings import DBSettings  # noqa: E402
from docrecon.documents import models  # noqa: E402,F401  (registers tables)

# --- Alembic config & logging ---
config = context.config
if os.getenv("ALEMBIC_USE_APP_LOGGING", "1") == "1":
    setup_logging(level=os.getenv("LOG_LEVEL"), fmt=os.getenv("LOG_FORMAT"))
    logging.getLogger(__name__).debug("Alembic using app logging setup.")
elif config.config_file_name is not None:
    fileConfig(config.config_file_name)

# --- Database URL override via env (DB_DATABASE_URL or DATABASE_URL) ---
if os.getenv("DB_DATABASE_URL") or os.getenv("DATABASE_URL"):
    config.set_main_option("sqlalchemy.url", DBSettings().resolved_database_url)

target_metadata = Base.metadata

# --- Choose async/sync path from URL automatically ---
url_str = config.get_main_option("sqlalchemy.url") or ""
driver = make_url(url_str).get_dialect().driver if url_str else ""
is_async = driver in {"asyncpg", "aiosqlite"}


def run_migrations_offline():
    context.configure(
        url=url_str,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online_async():
    from sqlalchemy.ext.asyncio import create_async_engine

    connectable = create_async_engine(url_str, poolclass=pool.NullPool)
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


def run_migrations_online_sync():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        do_run_migrations(connection)
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
elif is_async:
    asyncio.run(run_migrations_online_async())
else:
    run_migrations_online_sync()
