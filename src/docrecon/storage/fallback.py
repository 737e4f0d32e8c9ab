"""
Local-filesystem fallback store.

Holds documents whose primary write failed. Paths are always resolved under
``base_path``; a relative key that would escape it is rejected.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import Union

import aiofiles
import aiofiles.os

from docrecon.exceptions import ObjectNotFoundError, StorageError

from .base import InvalidKeyError, validate_key

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class LocalFallbackStore:
    def __init__(self, base_path: PathLike):
        self.base_path = Path(base_path).resolve()

    def path_for(self, location: PathLike) -> Path:
        """Resolve a relative key (or an absolute path inside the root) to a Path."""
        p = Path(location)
        if p.is_absolute():
            resolved = p.resolve()
        else:
            validate_key(str(location))
            resolved = (self.base_path / p).resolve()
        if resolved != self.base_path and self.base_path not in resolved.parents:
            raise StorageError(f"path escapes fallback root: {location}")
        return resolved

    async def put(self, data: bytes, relative_key: str) -> Path:
        """Write ``data`` atomically and return the final path."""
        target = self.path_for(relative_key)
        tmp = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(tmp, "wb") as out:
                await out.write(data)
            await aiofiles.os.replace(tmp, target)
        except OSError as e:
            if await aiofiles.os.path.exists(tmp):
                await aiofiles.os.remove(tmp)
            raise StorageError(f"fallback write failed for {relative_key}: {e}") from e
        return target

    async def exists(self, location: PathLike) -> bool:
        try:
            return await aiofiles.os.path.isfile(self.path_for(location))
        except (StorageError, InvalidKeyError):
            return False

    async def read(self, location: PathLike) -> bytes:
        path = self.path_for(location)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(f"fallback file not found: {location}") from e
        except OSError as e:
            raise StorageError(f"fallback file unreadable: {location}: {e}") from e

    async def delete(self, location: PathLike) -> bool:
        path = self.path_for(location)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"fallback delete failed for {location}: {e}") from e
        return True

    async def list_files(self) -> list[str]:
        """Every file under the root, as keys relative to it."""

        def _walk() -> list[str]:
            if not self.base_path.is_dir():
                return []
            found: list[str] = []
            for root, _dirs, files in os.walk(self.base_path):
                for name in files:
                    if name.startswith(".") and name.endswith(".tmp"):
                        continue
                    full = Path(root) / name
                    found.append(full.relative_to(self.base_path).as_posix())
            return sorted(found)

        return await asyncio.to_thread(_walk)

    async def ping(self) -> None:
        try:
            await aiofiles.os.makedirs(self.base_path, exist_ok=True)
        except OSError as e:
            raise StorageError(f"fallback root not writable: {e}") from e
