from .coordinator import (
    BulkMigrationResult,
    MigrationOutcome,
    MigrationResult,
    RecoveryCoordinator,
)
from .guard import KeyedLocks, SingleFlight
from .jobs import InMemoryJobStore, Job, JobStatus, JobStore, RedisJobStore, build_job_store
from .settings import RecoverySettings, get_recovery_settings

__all__ = [
    "BulkMigrationResult",
    "MigrationOutcome",
    "MigrationResult",
    "RecoveryCoordinator",
    "KeyedLocks",
    "SingleFlight",
    "InMemoryJobStore",
    "Job",
    "JobStatus",
    "JobStore",
    "RedisJobStore",
    "build_job_store",
    "RecoverySettings",
    "get_recovery_settings",
]
