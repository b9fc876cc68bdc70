"""Amazon S3 blob store.

Uses a boto3 S3 client with bounded connect/read timeouts. Presigned GET
URLs carry a ``Content-Disposition`` so browsers save the file under its
document name.
"""

from uuid import uuid4

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import ClientError, ConnectTimeoutError, ReadTimeoutError

from billing.errors import BlobNotFoundError, CollaboratorTimeoutError
from billing.storage.port import BlobStore, StoredBlob

logger = structlog.get_logger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def build_s3_client(region: str | None = None, timeout: float = 30.0):
    """Create an S3 client with SigV4 signing and bounded timeouts."""
    config = Config(
        signature_version="s3v4",
        connect_timeout=timeout,
        read_timeout=timeout,
        retries={"max_attempts": 3, "mode": "standard"},
    )
    return boto3.client("s3", region_name=region, config=config)


class S3BlobStore(BlobStore):
    def __init__(self, bucket: str, client=None, region: str | None = None, timeout: float = 30.0) -> None:
        if not bucket:
            raise ValueError("An S3 bucket name is required")
        self.bucket = bucket
        self.timeout = timeout
        self._client = client or build_s3_client(region=region, timeout=timeout)

    def _call(self, operation: str, **params):
        try:
            return getattr(self._client, operation)(**params)
        except (ConnectTimeoutError, ReadTimeoutError) as exc:
            logger.warning("s3_timeout", operation=operation, bucket=self.bucket, key=params.get("Key"))
            raise CollaboratorTimeoutError(f"s3.{operation}", self.timeout) from exc

    @staticmethod
    def _is_missing(exc: ClientError) -> bool:
        return str(exc.response.get("Error", {}).get("Code")) in _MISSING_CODES

    def put(self, data: bytes, key_prefix: str = "", content_type: str = "application/pdf") -> StoredBlob:
        key = "/".join(part for part in (key_prefix.strip("/"), f"{uuid4().hex}.pdf") if part)
        self._call(
            "put_object",
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            ServerSideEncryption="AES256",
        )
        return StoredBlob(key=key, location=f"s3://{self.bucket}/{key}", byte_size=len(data))

    def get(self, key: str) -> bytes:
        try:
            response = self._call("get_object", Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if self._is_missing(exc):
                raise BlobNotFoundError(key) from exc
            raise
        return response["Body"].read()

    def exists(self, key: str) -> bool:
        try:
            self._call("head_object", Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if self._is_missing(exc):
                return False
            raise
        return True

    def signed_url(self, key: str, ttl_seconds: int, file_name: str | None = None) -> str:
        params = {"Bucket": self.bucket, "Key": key}
        if file_name:
            params["ResponseContentDisposition"] = f'inline; filename="{file_name}"'
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params=params,
            ExpiresIn=int(ttl_seconds),
        )
