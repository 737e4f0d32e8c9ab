"""Unit tests for MemoryBackend."""

import pytest

from docrecon.exceptions import ObjectNotFoundError, PrimaryUnavailableError
from docrecon.storage.backends.memory import MemoryBackend
from docrecon.storage.base import InvalidKeyError


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.mark.storage
@pytest.mark.asyncio
class TestMemoryBackend:
    """Test suite for the in-memory ObjectStore."""

    async def test_put_and_get(self, backend):
        """Test basic storage and retrieval."""
        key = await backend.put("documents/app-1/a.pdf", b"Hello", "application/pdf")

        assert key == "documents/app-1/a.pdf"
        assert await backend.get(key) == b"Hello"

    async def test_put_is_always_encrypted(self, backend):
        """Every stored object carries server-side encryption."""
        await backend.put("a.txt", b"x", "text/plain", {"sha256": "abc"})

        stored = backend.stored("a.txt")
        assert stored.server_side_encryption == "AES256"
        assert stored.metadata == {"sha256": "abc"}
        assert stored.content_type == "text/plain"

    async def test_get_missing_raises_not_found(self, backend):
        with pytest.raises(ObjectNotFoundError):
            await backend.get("nope.txt")

    async def test_head_exists(self, backend):
        await backend.put("a.txt", b"x", "text/plain")

        assert await backend.head_exists("a.txt") is True
        assert await backend.head_exists("b.txt") is False

    async def test_invalid_keys_rejected(self, backend):
        """Test that keys escaping the namespace are refused."""
        for key in ("", "/abs/path", "a/../b", "space in key"):
            with pytest.raises(InvalidKeyError):
                await backend.put(key, b"x", "text/plain")

    async def test_delete(self, backend):
        await backend.put("a.txt", b"x", "text/plain")

        assert await backend.delete("a.txt") is True
        assert await backend.delete("a.txt") is False
        assert await backend.head_exists("a.txt") is False

    async def test_list_keys_prefix_and_limit(self, backend):
        for name in ("b", "a", "c"):
            await backend.put(f"docs/{name}.txt", b"x", "text/plain")
        await backend.put("other/z.txt", b"x", "text/plain")

        assert await backend.list_keys("docs/") == ["docs/a.txt", "docs/b.txt", "docs/c.txt"]
        assert await backend.list_keys("docs/", limit=2) == ["docs/a.txt", "docs/b.txt"]

    async def test_signed_url(self, backend):
        await backend.put("a.txt", b"x", "text/plain")

        url = await backend.issue_signed_url("a.txt", 60)

        assert url.startswith("memory://a.txt?expires=")
        assert "signature=" in url

    async def test_signed_url_missing_object(self, backend):
        with pytest.raises(ObjectNotFoundError):
            await backend.issue_signed_url("nope.txt", 60)


@pytest.mark.storage
@pytest.mark.asyncio
class TestMemoryBackendOutage:
    """Behaviour while the backend simulates an outage."""

    async def test_calls_raise_unavailable(self, backend):
        backend.available = False

        with pytest.raises(PrimaryUnavailableError):
            await backend.put("a.txt", b"x", "text/plain")
        with pytest.raises(PrimaryUnavailableError):
            await backend.get("a.txt")
        with pytest.raises(PrimaryUnavailableError):
            await backend.ping()

    async def test_head_exists_never_raises(self, backend):
        """head_exists answers False instead of raising."""
        await backend.put("a.txt", b"x", "text/plain")
        backend.available = False

        assert await backend.head_exists("a.txt") is False

    async def test_put_calls_not_counted_while_down(self, backend):
        backend.available = False
        with pytest.raises(PrimaryUnavailableError):
            await backend.put("a.txt", b"x", "text/plain")

        assert backend.put_calls == 0
