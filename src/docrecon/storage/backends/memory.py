"""
In-memory ObjectStore.

Used by tests and local development. ``available`` simulates a primary
outage: while False every call that talks to the store raises
``PrimaryUnavailableError`` (``head_exists`` answers False instead).
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ..base import (
    ObjectNotFoundError,
    ObjectStore,
    PrimaryUnavailableError,
    validate_key,
)


@dataclass
class StoredObject:
    data: bytes
    content_type: str
    server_side_encryption: str
    metadata: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class MemoryBackend(ObjectStore):
    name = "memory"

    def __init__(
        self,
        *,
        server_side_encryption: str = "AES256",
        signing_secret: str = "memory-secret",
    ):
        self._objects: dict[str, StoredObject] = {}
        self._lock = asyncio.Lock()
        self._sse = server_side_encryption
        self._secret = signing_secret.encode()
        self.available = True
        self.put_calls = 0

    def _check_available(self) -> None:
        if not self.available:
            raise PrimaryUnavailableError("memory backend is marked unavailable")

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        validate_key(key)
        self._check_available()
        async with self._lock:
            self.put_calls += 1
            self._objects[key] = StoredObject(
                data=bytes(data),
                content_type=content_type,
                server_side_encryption=self._sse,
                metadata=dict(metadata or {}),
            )
        return key

    async def get(self, key: str) -> bytes:
        self._check_available()
        obj = self._objects.get(key)
        if obj is None:
            raise ObjectNotFoundError(f"object not found: {key}")
        return obj.data

    async def head_exists(self, key: str) -> bool:
        if not self.available:
            return False
        return key in self._objects

    async def issue_signed_url(self, key: str, ttl: int) -> str:
        self._check_available()
        if key not in self._objects:
            raise ObjectNotFoundError(f"object not found: {key}")
        expires = int(time.time()) + int(ttl)
        sig = hmac.new(self._secret, f"{key}:{expires}".encode(), hashlib.sha256).hexdigest()
        return f"memory://{key}?expires={expires}&signature={sig}"

    async def delete(self, key: str) -> bool:
        self._check_available()
        async with self._lock:
            return self._objects.pop(key, None) is not None

    async def list_keys(self, prefix: str = "", limit: Optional[int] = None) -> list[str]:
        self._check_available()
        keys = sorted(k for k in self._objects if k.startswith(prefix))
        return keys[:limit] if limit is not None else keys

    async def ping(self) -> None:
        self._check_available()

    # Test helpers
    def stored(self, key: str) -> StoredObject:
        return self._objects[key]

    def corrupt(self, key: str, data: bytes) -> None:
        """Overwrite bytes in place without touching metadata."""
        self._objects[key].data = data

    def clear(self) -> None:
        self._objects.clear()
