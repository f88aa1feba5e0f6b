"""Blob storage providers."""

from fileready.providers.blob.local_blob_storage import LocalBlobStorage

__all__ = ["LocalBlobStorage"]
