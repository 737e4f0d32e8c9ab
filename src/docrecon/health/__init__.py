from .policy import DEFAULT_POLICY, HealthCheckResult, HealthPolicy, HealthStatus
from .reporter import (
    HealthReport,
    HealthReporter,
    hourly_activity,
    recovery_priority,
    success_rate,
)

__all__ = [
    "DEFAULT_POLICY",
    "HealthCheckResult",
    "HealthPolicy",
    "HealthStatus",
    "HealthReport",
    "HealthReporter",
    "hourly_activity",
    "recovery_priority",
    "success_rate",
]
