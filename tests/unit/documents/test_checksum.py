"""Tests for ChecksumVerifier."""

import hashlib

import pytest

from docrecon.documents.checksum import ChecksumVerifier
from docrecon.exceptions import ChecksumMismatchError


@pytest.fixture
def verifier():
    return ChecksumVerifier()


class TestChecksumVerifier:
    def test_digest_is_sha256_hex(self, verifier):
        assert verifier.digest(b"abc") == hashlib.sha256(b"abc").hexdigest()

    def test_verify_accepts_uppercase_expected(self, verifier):
        expected = verifier.digest(b"abc").upper()
        assert verifier.verify(b"abc", expected) is True

    def test_verify_detects_change(self, verifier):
        assert verifier.verify(b"abd", verifier.digest(b"abc")) is False

    @pytest.mark.asyncio
    async def test_adigest_offloads_large_buffers(self):
        """Large buffers hash off the loop and give the same digest."""
        verifier = ChecksumVerifier(offload_threshold=4)
        data = b"0123456789"

        assert await verifier.adigest(data) == verifier.digest(data)

    @pytest.mark.asyncio
    async def test_ensure_returns_digest(self, verifier):
        digest = verifier.digest(b"abc")
        assert await verifier.ensure(b"abc", digest) == digest

    @pytest.mark.asyncio
    async def test_ensure_raises_with_both_digests(self, verifier):
        expected = verifier.digest(b"abc")

        with pytest.raises(ChecksumMismatchError) as exc_info:
            await verifier.ensure(b"tampered", expected, document_id="doc-1")

        err = exc_info.value
        assert err.expected == expected
        assert err.actual == verifier.digest(b"tampered")
        assert err.document_id == "doc-1"
        assert err.code == "checksum_mismatch"
