from __future__ import annotations

import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional

from redis.asyncio import Redis


class JobStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Job:
    """Handle for a bulk recovery run that callers can poll."""

    id: str
    name: str
    status: JobStatus = JobStatus.PENDING
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    created_at: datetime = field(default_factory=_now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        for k in ("created_at", "started_at", "finished_at"):
            data[k] = data[k].isoformat() if data[k] else None
        return data


def new_job(name: str) -> Job:
    return Job(id=uuid.uuid4().hex, name=name)


class JobStore(ABC):
    @abstractmethod
    async def save(self, job: Job) -> Job: ...

    @abstractmethod
    async def get(self, job_id: str) -> Optional[Job]: ...

    async def update(self, job_id: str, **changes: Any) -> Optional[Job]:
        job = await self.get(job_id)
        if job is None:
            return None
        return await self.save(replace(job, **changes))

    async def close(self) -> None:
        return None


class InMemoryJobStore(JobStore):
    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}

    async def save(self, job: Job) -> Job:
        self._jobs[job.id] = job
        return job

    async def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)


class RedisJobStore(JobStore):
    """Redis-backed job store.

    Keys (with optional prefix):
      - {p}:job:{id} (HASH)   job fields, expiring after ``ttl_seconds``
    """

    def __init__(self, client: Redis, *, prefix: str = "docrecon", ttl_seconds: int = 604800):
        self._r = client
        self._p = prefix
        self._ttl = ttl_seconds

    def _job_key(self, job_id: str) -> str:
        return f"{self._p}:job:{job_id}"

    async def save(self, job: Job) -> Job:
        data = job.to_dict()
        key = self._job_key(job.id)
        pipe = self._r.pipeline()
        pipe.delete(key)
        pipe.hset(key, mapping={k: json.dumps(v) for k, v in data.items()})
        pipe.expire(key, self._ttl)
        await pipe.execute()
        return job

    async def get(self, job_id: str) -> Optional[Job]:
        raw = await self._r.hgetall(self._job_key(job_id))
        if not raw:
            return None
        data: dict[str, Any] = {}
        for k, v in raw.items():
            name = k.decode() if isinstance(k, (bytes, bytearray)) else str(k)
            text = v.decode() if isinstance(v, (bytes, bytearray)) else str(v)
            data[name] = json.loads(text)

        def _dt(val: Optional[str]) -> Optional[datetime]:
            return datetime.fromisoformat(val) if val else None

        return Job(
            id=data["id"],
            name=data.get("name") or "",
            status=JobStatus(data.get("status", JobStatus.PENDING.value)),
            attempted=int(data.get("attempted") or 0),
            succeeded=int(data.get("succeeded") or 0),
            failed=int(data.get("failed") or 0),
            created_at=_dt(data.get("created_at")) or _now(),
            started_at=_dt(data.get("started_at")),
            finished_at=_dt(data.get("finished_at")),
            error=data.get("error"),
        )

    async def close(self) -> None:
        await self._r.aclose()


def build_job_store(
    kind: str, redis_url: Optional[str] = None, *, ttl_seconds: int = 604800
) -> JobStore:
    if kind == "memory":
        return InMemoryJobStore()
    if kind == "redis":
        if not redis_url:
            raise ValueError("RECOVERY_REDIS_URL is required for the redis job store")
        return RedisJobStore(Redis.from_url(redis_url), ttl_seconds=ttl_seconds)
    raise ValueError(f"Unknown job store: {kind}")
