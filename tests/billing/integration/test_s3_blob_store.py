from io import BytesIO
from unittest.mock import MagicMock

import pytest
from billing.errors import BlobNotFoundError, CollaboratorTimeoutError
from billing.storage.s3_adapter import S3BlobStore
from botocore.exceptions import ClientError, ReadTimeoutError


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


@pytest.fixture()
def client():
    return MagicMock()


@pytest.fixture()
def store(client):
    return S3BlobStore(bucket="billing-docs", client=client, timeout=5.0)


class TestPut:
    def test_put_uploads_under_prefix(self, store, client):
        stored = store.put(b"%PDF-1.4", key_prefix="documents/inv-1/invoice")

        kwargs = client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "billing-docs"
        assert kwargs["Key"] == stored.key
        assert kwargs["ContentType"] == "application/pdf"
        assert stored.key.startswith("documents/inv-1/invoice/")
        assert stored.key.endswith(".pdf")
        assert stored.location == f"s3://billing-docs/{stored.key}"
        assert stored.byte_size == 8

    def test_each_put_gets_a_fresh_key(self, store):
        assert store.put(b"a", "p").key != store.put(b"a", "p").key

    def test_read_timeout_becomes_collaborator_timeout(self, store, client):
        client.put_object.side_effect = ReadTimeoutError(endpoint_url="https://s3.amazonaws.com")
        with pytest.raises(CollaboratorTimeoutError) as exc:
            store.put(b"data", "p")
        assert exc.value.operation == "s3.put_object"


class TestGetAndExists:
    def test_get_reads_body(self, store, client):
        client.get_object.return_value = {"Body": BytesIO(b"%PDF")}
        assert store.get("k") == b"%PDF"

    def test_get_missing_key(self, store, client):
        client.get_object.side_effect = _client_error("NoSuchKey", "GetObject")
        with pytest.raises(BlobNotFoundError):
            store.get("k")

    def test_exists(self, store, client):
        assert store.exists("k") is True
        client.head_object.assert_called_once_with(Bucket="billing-docs", Key="k")

    def test_exists_false_on_404(self, store, client):
        client.head_object.side_effect = _client_error("404", "HeadObject")
        assert store.exists("k") is False

    def test_other_client_errors_propagate(self, store, client):
        client.head_object.side_effect = _client_error("AccessDenied", "HeadObject")
        with pytest.raises(ClientError):
            store.exists("k")


class TestSignedUrl:
    def test_presigns_get_with_filename(self, store, client):
        client.generate_presigned_url.return_value = "https://signed"

        assert store.signed_url("k", 600, "INV-2025-0001.pdf") == "https://signed"

        kwargs = client.generate_presigned_url.call_args.kwargs
        assert kwargs["ClientMethod"] == "get_object"
        assert kwargs["ExpiresIn"] == 600
        assert kwargs["Params"]["ResponseContentDisposition"] == 'inline; filename="INV-2025-0001.pdf"'


def test_bucket_is_required(client):
    with pytest.raises(ValueError):
        S3BlobStore(bucket="", client=client)
