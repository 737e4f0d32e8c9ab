from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    name: str = "docrecon"
    version: str = "0.1.0"
    log_level: Optional[str] = None
    log_format: Optional[Literal["json", "plain"]] = None

    model_config = SettingsConfigDict(
        env_prefix="APP_",  # APP_NAME, APP_VERSION, APP_LOG_LEVEL
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_app_settings(**kwargs) -> AppSettings:
    # Drop None overrides so field defaults apply
    filtered_kwargs = {k: v for k, v in kwargs.items() if v is not None}
    return AppSettings(**filtered_kwargs)
