from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from .base import Base
from .engine import DBEngine
from .settings import DBSettings


async def create_all(async_engine: AsyncEngine) -> None:
    # models must be imported so their tables are registered on Base.metadata
    from docrecon.documents import models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_all(async_engine: AsyncEngine) -> None:
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


def make_sqlite_engine(path: str | None = None, *, echo: bool = False) -> DBEngine:
    """SQLite engine for tests and local runs; in-memory when ``path`` is None."""
    url = f"sqlite+aiosqlite:///{path}" if path else "sqlite+aiosqlite:///:memory:"
    return DBEngine(DBSettings(database_url=url, echo=echo))
