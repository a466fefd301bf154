from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    """
    Async key -> bytes storage for the database snapshot.

    The engine only ever stores one named blob; implementations may hold more.
    """

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the stored bytes for `key`, or None when nothing is stored."""
        pass

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Replace the stored bytes for `key`."""
        pass


class MemoryBlobStore(BlobStore):
    """Process-local store. Counts writes so callers can check persist gating."""

    def __init__(self, initial: dict[str, bytes] | None = None):
        self._blobs: dict[str, bytes] = dict(initial or {})
        self.writes = 0

    async def get(self, key: str) -> bytes | None:
        return self._blobs.get(key)

    async def put(self, key: str, data: bytes) -> None:
        self._blobs[key] = bytes(data)
        self.writes += 1


def _safe_key(key: str) -> str:
    name = os.path.basename(key)
    if not name or name != key or name in (".", ".."):
        raise ValueError(f"Invalid blob key: {key!r}")
    return name


def _atomic_write(path: Path, data: bytes) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        if tmp.exists():
            tmp.unlink()
        raise


class FileBlobStore(BlobStore):
    """
    One file per key under `<root>/<name>_v<version>/`.

    The versioned directory is the store identity; bumping the version starts
    from an empty store. Writes go to a temp file first and are swapped in with
    os.replace, so a crash mid-write leaves the previous blob intact.
    """

    def __init__(self, root: Path | str, name: str, version: int = 1):
        self.directory = Path(root) / f"{name}_v{int(version)}"

    def _path(self, key: str) -> Path:
        return self.directory / _safe_key(key)

    def _read(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def _write(self, key: str, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        _atomic_write(self._path(key), data)

    async def get(self, key: str) -> bytes | None:
        return await asyncio.to_thread(self._read, key)

    async def put(self, key: str, data: bytes) -> None:
        await asyncio.to_thread(self._write, key, bytes(data))
        logger.debug("Stored blob %s (%d bytes) in %s", key, len(data), self.directory)
