from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Optional


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class HealthCheckResult:
    name: str
    status: HealthStatus
    latency_ms: float
    message: Optional[str] = None
    details: Optional[dict[str, Any]] = None

    @property
    def passed(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message is not None:
            out["message"] = self.message
        if self.details is not None:
            out["details"] = self.details
        return out


@dataclass(frozen=True)
class HealthPolicy:
    """The one scoring policy every health view uses.

    score = db_weight (database reachable) + store_weight (primary reachable)
            + activity_weight (uploads seen in the trailing window)
    """

    db_weight: int = 40
    store_weight: int = 40
    activity_weight: int = 20
    healthy_threshold: int = 80
    degraded_threshold: int = 60

    def score(self, db_ok: bool, store_ok: bool, activity_ok: bool) -> int:
        return (
            (self.db_weight if db_ok else 0)
            + (self.store_weight if store_ok else 0)
            + (self.activity_weight if activity_ok else 0)
        )

    def status_for(self, score: int) -> HealthStatus:
        if score >= self.healthy_threshold:
            return HealthStatus.HEALTHY
        if score >= self.degraded_threshold:
            return HealthStatus.DEGRADED
        return HealthStatus.UNHEALTHY


DEFAULT_POLICY = HealthPolicy()
