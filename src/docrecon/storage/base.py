"""
ObjectStore contract for the primary durable store.

Every backend classifies provider failures before they leave the adapter:

- ``PrimaryUnavailableError`` for network, auth and configuration problems.
  Callers react by writing to the local fallback store.
- ``ObjectNotFoundError`` when the key does not resolve. This is a data
  integrity signal and is never retried blindly.
- ``StorageError`` for anything else the provider rejects (a business-logic
  condition such as an oversized body); it does not trigger fallback.

Successful writes are always server-side encrypted; backends expose no switch
to turn that off.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Optional

from docrecon.exceptions import (
    ObjectNotFoundError,
    PrimaryUnavailableError,
    StorageError,
    ValidationError,
)

# Allowed: letters, digits, dot, dash, underscore, slash. No "..", no leading slash.
_KEY_RE = re.compile(r"^[A-Za-z0-9._\-/]+$")
MAX_KEY_LENGTH = 1024


class InvalidKeyError(ValidationError):
    """Storage key is malformed or tries to escape its namespace."""


def validate_key(key: str) -> str:
    if not key or len(key) > MAX_KEY_LENGTH:
        raise InvalidKeyError(f"invalid storage key length: {key!r}")
    if key.startswith("/") or ".." in key.split("/"):
        raise InvalidKeyError(f"storage key must be relative: {key!r}")
    if not _KEY_RE.match(key):
        raise InvalidKeyError(f"storage key has unsupported characters: {key!r}")
    return key


class ObjectStore(ABC):
    """Uniform async interface over the primary durable store."""

    name: str = "primary"

    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        """Store ``data`` under ``key`` and return the key."""

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the object's bytes or raise ``ObjectNotFoundError``."""

    @abstractmethod
    async def head_exists(self, key: str) -> bool:
        """True when ``key`` resolves. Never raises."""

    @abstractmethod
    async def issue_signed_url(self, key: str, ttl: int) -> str:
        """Time-limited download URL; ``ObjectNotFoundError`` if absent."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove ``key``; False when there was nothing to delete."""

    @abstractmethod
    async def list_keys(self, prefix: str = "", limit: Optional[int] = None) -> list[str]:
        ...

    @abstractmethod
    async def ping(self) -> None:
        """Raise ``PrimaryUnavailableError`` when the store cannot be reached."""


__all__ = [
    "ObjectStore",
    "InvalidKeyError",
    "validate_key",
    "StorageError",
    "ObjectNotFoundError",
    "PrimaryUnavailableError",
    "MAX_KEY_LENGTH",
]
