"""Abstract base class for raw blob storage.

The pipeline only reads blobs; uploads are written by the transport layer
before the upload job is enqueued.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   LocalBlobStorage - files under a root directory
# Located in: fileready/providers/blob/
class IBlobStorage(ABC):
    """Contract for reading uploaded blobs."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Return ``True`` if a blob is stored at *path*."""

    @abstractmethod
    async def download(self, path: str) -> bytes:
        """Return the full contents of the blob at *path*.

        Raises
        ------
        fileready.utils.errors.BlobNotFoundError
            If nothing is stored at *path*.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this storage backend."""
