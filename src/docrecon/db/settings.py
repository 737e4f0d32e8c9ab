from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ASYNC_DRIVERS = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


def normalize_database_url(url: str) -> str:
    """Rewrite sync driver prefixes to the async driver the engine needs.

    URLs that already name a driver (``postgresql+asyncpg://``,
    ``sqlite+aiosqlite://``) pass through unchanged.
    """
    for prefix, async_prefix in _ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            return async_prefix + url[len(prefix):]
    return url


class DBSettings(BaseSettings):
    """
    Connection settings for the document metadata database.

    The documents table and the upload, access and recovery logs all live
    here. Env: DB_DATABASE_URL, DB_ECHO, DB_POOL_SIZE, DB_MAX_OVERFLOW,
    DB_POOL_RECYCLE. A bare DATABASE_URL is honored when DB_DATABASE_URL is
    unset, so the service can share a platform-provided URL.
    """

    database_url: Optional[str] = Field(default=None)
    echo: bool = Field(default=False)
    pool_size: int = Field(default=10, gt=0)
    max_overflow: int = Field(default=20, ge=0)
    pool_recycle: int = Field(default=1800, gt=0)  # seconds
    # asyncpg prepared statement cache; 0 when running behind pgbouncer
    statement_cache_size: int = Field(default=1000, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url or os.getenv("DATABASE_URL")
        if not url:
            raise ValueError(
                "DATABASE_URL or DB_DATABASE_URL must be set for the document metadata store"
            )
        return normalize_database_url(url)


@lru_cache
def get_db_settings(**kwargs) -> DBSettings:
    filtered = {k: v for k, v in kwargs.items() if v is not None}
    return DBSettings(**filtered)
