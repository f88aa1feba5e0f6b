"""Local-filesystem blob storage.

Blob paths are relative to a root directory.  Paths that would escape the
root (absolute paths, ``..`` segments) are treated as absent rather than
read.  File I/O runs in a worker thread so the event loop is not blocked.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from fileready.interfaces.blob_storage import IBlobStorage
from fileready.utils.errors import BlobNotFoundError

logger = structlog.get_logger(logger_name=__name__)


class LocalBlobStorage(IBlobStorage):
    def __init__(self, root: str | Path = "data/blobs") -> None:
        self._root = Path(root).resolve()

    def _resolve(self, path: str) -> Path | None:
        candidate = (self._root / path).resolve()
        if not candidate.is_relative_to(self._root):
            logger.warning("blob_path_outside_root", path=path)
            return None
        return candidate

    async def exists(self, path: str) -> bool:
        target = self._resolve(path)
        if target is None:
            return False
        return await asyncio.to_thread(target.is_file)

    async def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if target is None or not await asyncio.to_thread(target.is_file):
            raise BlobNotFoundError(
                f"Blob not found at path: {path}", provider_name=self.get_provider_name()
            )
        data = await asyncio.to_thread(target.read_bytes)
        logger.debug("blob_downloaded", path=path, size_bytes=len(data))
        return data

    async def upload(self, path: str, data: bytes) -> None:
        """Write a blob.  Used by tests to stage uploads."""
        target = self._resolve(path)
        if target is None:
            raise BlobNotFoundError(
                f"Refusing to write outside blob root: {path}",
                provider_name=self.get_provider_name(),
            )
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(target.write_bytes, data)

    def get_provider_name(self) -> str:
        return "local_blob"
