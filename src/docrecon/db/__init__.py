from .base import Base, CreatedAtMixin, TimestampMixin, UUIDMixin, utcnow
from .engine import DBEngine
from .health import db_healthcheck
from .repository import Repository, apply_filters
from .settings import DBSettings, get_db_settings, normalize_database_url
from .uow import UnitOfWork

__all__ = [
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    "UUIDMixin",
    "utcnow",
    "DBEngine",
    "db_healthcheck",
    "Repository",
    "apply_filters",
    "DBSettings",
    "get_db_settings",
    "normalize_database_url",
    "UnitOfWork",
]
