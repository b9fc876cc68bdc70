"""Blob store adapters.

``build_blob_store(settings)`` picks the adapter: S3 when a bucket is
configured, the in-memory store otherwise. The result is handed to the
document cache explicitly; nothing is cached at module level.
"""

from billing.config import BillingSettings
from billing.storage.memory_adapter import InMemoryBlobStore
from billing.storage.port import BlobStore, StoredBlob


def build_blob_store(settings: BillingSettings) -> BlobStore:
    if settings.s3_bucket:
        from billing.storage.s3_adapter import S3BlobStore

        return S3BlobStore(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            timeout=settings.io_timeout_seconds,
        )
    return InMemoryBlobStore()


__all__ = ["BlobStore", "InMemoryBlobStore", "StoredBlob", "build_blob_store"]
