"""Blob store port (abstract interface).

Defines the contract that rendered-document storage adapters implement,
so the document cache works the same against S3 in production and the
in-memory store in development and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class StoredBlob:
    """Where a blob ended up after ``put``."""

    key: str
    location: str
    byte_size: int


class BlobStore(ABC):
    """Abstract blob store interface."""

    @abstractmethod
    def put(self, data: bytes, key_prefix: str = "", content_type: str = "application/pdf") -> StoredBlob:
        """Store ``data`` under a fresh key beneath ``key_prefix``."""
        ...

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the stored bytes or raise ``BlobNotFoundError``."""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def signed_url(self, key: str, ttl_seconds: int, file_name: str | None = None) -> str:
        """Return a time-limited URL for downloading ``key``."""
        ...
