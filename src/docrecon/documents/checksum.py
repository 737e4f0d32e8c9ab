from __future__ import annotations

import asyncio
import hashlib
import hmac
from typing import Optional

from docrecon.exceptions import ChecksumMismatchError

# Buffers above this size are hashed off the event loop.
OFFLOAD_THRESHOLD = 1024 * 1024


class ChecksumVerifier:
    """SHA-256 content digests.

    The digest is captured once, when bytes are first written, and stored on
    the record. Later checks always compare against that stored value.
    """

    algorithm = "sha256"

    def __init__(self, offload_threshold: int = OFFLOAD_THRESHOLD):
        self.offload_threshold = offload_threshold

    def digest(self, data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

    def verify(self, data: bytes, expected: str) -> bool:
        return hmac.compare_digest(self.digest(data), expected.lower())

    async def adigest(self, data: bytes) -> str:
        if len(data) >= self.offload_threshold:
            return await asyncio.to_thread(self.digest, data)
        return self.digest(data)

    async def ensure(
        self, data: bytes, expected: str, *, document_id: Optional[str] = None
    ) -> str:
        """Return the digest of ``data`` or raise ``ChecksumMismatchError``."""
        actual = await self.adigest(data)
        if not hmac.compare_digest(actual, expected.lower()):
            raise ChecksumMismatchError(
                f"digest {actual} does not match stored {expected}",
                expected=expected,
                actual=actual,
                document_id=document_id,
            )
        return actual
