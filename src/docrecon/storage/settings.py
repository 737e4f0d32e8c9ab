from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """
    Storage settings.

    Env support:
      - STORAGE_BACKEND (s3 | memory)
      - STORAGE_S3_BUCKET, STORAGE_S3_REGION, STORAGE_S3_ENDPOINT
      - STORAGE_S3_ACCESS_KEY, STORAGE_S3_SECRET_KEY
      - STORAGE_S3_SSE, STORAGE_S3_KMS_KEY_ID
      - STORAGE_SIGNED_URL_TTL, STORAGE_FALLBACK_PATH
    """

    backend: Literal["s3", "memory"] = "s3"

    s3_bucket: Optional[str] = None
    s3_region: str = "us-east-1"
    s3_endpoint: Optional[str] = None  # MinIO, Spaces, Wasabi
    s3_access_key: Optional[str] = None
    s3_secret_key: Optional[str] = None
    s3_sse: Literal["AES256", "aws:kms"] = "AES256"
    s3_kms_key_id: Optional[str] = None

    signed_url_ttl: int = Field(default=3600, gt=0)
    fallback_path: str = "uploads/documents"

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_storage_settings(**kwargs) -> StorageSettings:
    filtered = {k: v for k, v in kwargs.items() if v is not None}
    return StorageSettings(**filtered)
