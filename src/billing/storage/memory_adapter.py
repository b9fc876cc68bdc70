"""In-memory blob store for development and testing.

Signed URLs are HMAC-signed ``memory://`` URLs with an expiry, so callers
can exercise expiry handling without a real object store. ``lose()``
simulates out-of-band deletion; ``delay_seconds`` simulates a slow store.
"""

import hashlib
import hmac
import time
from urllib.parse import urlencode
from uuid import uuid4

from billing.errors import BlobNotFoundError
from billing.storage.port import BlobStore, StoredBlob


class InMemoryBlobStore(BlobStore):
    def __init__(self, bucket: str = "billing-documents", secret: str = "dev-secret") -> None:
        self.bucket = bucket
        self._secret = secret.encode("utf-8")
        self._blobs: dict[str, bytes] = {}
        self.delay_seconds: float = 0.0
        self.calls: list[dict] = []

    def _record(self, method: str, **kwargs) -> None:
        self.calls.append({"method": method, **kwargs})
        if self.delay_seconds:
            time.sleep(self.delay_seconds)

    def put(self, data: bytes, key_prefix: str = "", content_type: str = "application/pdf") -> StoredBlob:
        key = "/".join(part for part in (key_prefix.strip("/"), f"{uuid4().hex}.pdf") if part)
        self._record("put", key=key, content_type=content_type, byte_size=len(data))
        self._blobs[key] = bytes(data)
        return StoredBlob(key=key, location=f"memory://{self.bucket}/{key}", byte_size=len(data))

    def get(self, key: str) -> bytes:
        self._record("get", key=key)
        try:
            return self._blobs[key]
        except KeyError as exc:
            raise BlobNotFoundError(key) from exc

    def exists(self, key: str) -> bool:
        self._record("exists", key=key)
        return key in self._blobs

    def signed_url(self, key: str, ttl_seconds: int, file_name: str | None = None) -> str:
        self._record("signed_url", key=key, ttl_seconds=ttl_seconds)
        expires = int(time.time()) + int(ttl_seconds)
        signature = hmac.new(self._secret, f"{key}:{expires}".encode(), hashlib.sha256).hexdigest()
        query = {"expires": expires, "signature": signature}
        if file_name:
            query["filename"] = file_name
        return f"memory://{self.bucket}/{key}?{urlencode(query)}"

    def lose(self, key: str) -> None:
        """Drop a blob behind the cache's back."""
        self._blobs.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._blobs)
