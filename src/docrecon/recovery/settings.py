from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RecoverySettings(BaseSettings):
    """
    Scanner, coordinator and health-report tuning.

    Env support: RECOVERY_SCAN_CONCURRENCY, RECOVERY_MIGRATE_CONCURRENCY,
    RECOVERY_VERIFY_PRIMARY_CHECKSUMS, RECOVERY_PRIMARY_VERIFY_MAX_BYTES,
    RECOVERY_JOB_STORE, RECOVERY_REDIS_URL, ...
    """

    scan_concurrency: int = Field(default=8, ge=1)
    migrate_concurrency: int = Field(default=4, ge=1)
    verify_primary_checksums: bool = True
    # per-scan cap on primary bytes downloaded for digest checks; None = no cap
    primary_verify_max_bytes: Optional[int] = Field(default=512 * 1024 * 1024, gt=0)
    delete_fallback_after_migration: bool = True

    finding_preview_limit: int = Field(default=10, ge=1)
    fallback_preview_limit: int = Field(default=50, ge=1)
    activity_window_seconds: int = Field(default=3600, gt=0)
    check_timeout: float = Field(default=5.0, gt=0)

    max_upload_bytes: int = Field(default=50 * 1024 * 1024, gt=0)

    job_store: Literal["memory", "redis"] = "memory"
    redis_url: Optional[str] = None
    job_ttl_seconds: int = Field(default=7 * 24 * 3600, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="RECOVERY_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_recovery_settings(**kwargs) -> RecoverySettings:
    filtered = {k: v for k, v in kwargs.items() if v is not None}
    return RecoverySettings(**filtered)
