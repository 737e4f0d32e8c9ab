from .core.env import Env, EnvFlags, get_env, get_env_flags
from .core.logging import JsonFormatter, setup_logging
from .settings import AppSettings, get_app_settings

__all__ = [
    "Env",
    "EnvFlags",
    "get_env",
    "get_env_flags",
    "JsonFormatter",
    "setup_logging",
    "AppSettings",
    "get_app_settings",
]
