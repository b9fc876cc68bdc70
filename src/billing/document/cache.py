"""Content-addressed cache of rendered invoice and receipt PDFs.

``get_or_create`` hashes the printed fields of the invoice and compares the
digest with the latest stored artifact for the same invoice and kind:

1. same hash and the blob is still stored → reuse it (``regenerated=False``)
2. no artifact, a different hash, or a lost blob → render, store under a
   fresh key, append a new artifact row (``regenerated=True``)

Either way a freshly signed URL is returned. Blob store and renderer calls
run under a deadline and surface ``CollaboratorTimeoutError`` when exceeded.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import structlog
from protean.domain import Domain

from billing.config import BillingSettings
from billing.document.artifact import DocumentArtifact, DocumentKind
from billing.document.hashing import DocumentContentHasher
from billing.document.snapshot import DocumentSnapshot
from billing.errors import InvalidOperationError
from billing.invoice.invoice import Invoice
from billing.invoice.status import InvoiceStatus
from billing.rendering.port import DocumentRenderer
from billing.storage.port import BlobStore
from billing.utils.timeouts import DeadlineRunner

logger = structlog.get_logger(__name__)

_RECEIPT_STATUSES = {InvoiceStatus.PAID.value, InvoiceStatus.PARTIALLY_PAID.value}


@dataclass(frozen=True)
class DocumentReference:
    """What a caller needs to serve a rendered document."""

    artifact_id: str
    blob_key: str
    signed_url: str
    content_hash: str
    file_name: str
    byte_size: int
    regenerated: bool
    content: bytes | None = None


class DocumentCacheService:
    def __init__(
        self,
        domain: Domain,
        blob_store: BlobStore,
        renderer: DocumentRenderer,
        settings: BillingSettings | None = None,
        hasher: DocumentContentHasher | None = None,
        runner: DeadlineRunner | None = None,
        single_flight: bool = False,
    ) -> None:
        self.domain = domain
        self.blob_store = blob_store
        self.renderer = renderer
        self.settings = settings or BillingSettings()
        self.hasher = hasher or DocumentContentHasher()
        self.runner = runner or DeadlineRunner(self.settings.io_timeout_seconds)
        self.single_flight = single_flight
        # key -> [lock, holders and waiters]; entries go away when the last one leaves
        self._locks: dict[tuple[str, str], list] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _single_flight(self, invoice_id: str, kind: DocumentKind) -> Iterator[None]:
        key = (invoice_id, kind.value)
        with self._locks_guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def _file_name(self, snapshot: DocumentSnapshot, kind: DocumentKind) -> str:
        if kind == DocumentKind.RECEIPT and snapshot.receipt_number:
            return f"{snapshot.receipt_number}.pdf"
        return f"{snapshot.invoice_number}.pdf"

    def get_or_create(
        self,
        invoice: Invoice,
        kind: DocumentKind | str,
        url_ttl_seconds: int | None = None,
        include_content: bool = False,
    ) -> DocumentReference:
        """Return a reference to an up-to-date rendering of ``invoice``."""
        kind = DocumentKind(kind.value if isinstance(kind, DocumentKind) else kind)
        if kind == DocumentKind.RECEIPT and invoice.status not in _RECEIPT_STATUSES:
            raise InvalidOperationError(f"Receipts are only available once a payment is recorded, not for {invoice.status}")

        snapshot = DocumentSnapshot.from_invoice(invoice)
        ttl = url_ttl_seconds or self.settings.signed_url_ttl_seconds

        if not self.single_flight:
            return self._get_or_create(snapshot, kind, ttl, include_content)
        with self._single_flight(snapshot.invoice_id, kind):
            return self._get_or_create(snapshot, kind, ttl, include_content)

    def _get_or_create(
        self,
        snapshot: DocumentSnapshot,
        kind: DocumentKind,
        ttl: int,
        include_content: bool,
    ) -> DocumentReference:
        content_hash = self.hasher.hash(snapshot, kind)
        log = logger.bind(invoice_id=snapshot.invoice_id, invoice_number=snapshot.invoice_number, kind=kind.value)

        with self.domain.domain_context():
            repo = self.domain.repository_for(DocumentArtifact)
            latest = repo.latest_for(snapshot.invoice_id, kind)

            if latest is None:
                reason = "first_generation"
            elif latest.content_hash != content_hash:
                reason = "content_changed"
            elif self.runner.call("blob.exists", self.blob_store.exists, latest.blob_key):
                log.debug("document_reused", artifact_id=str(latest.id), content_hash=content_hash)
                content = self.runner.call("blob.get", self.blob_store.get, latest.blob_key) if include_content else None
                return self._reference(latest, ttl, regenerated=False, content=content)
            else:
                reason = "blob_missing"
                log.warning("document_blob_missing", artifact_id=str(latest.id), blob_key=latest.blob_key)

            data = self.runner.call("renderer.render", self.renderer.render, snapshot, kind)
            key_prefix = f"{self.settings.s3_key_prefix}/{snapshot.invoice_id}/{kind.value.lower()}"
            stored = self.runner.call("blob.put", self.blob_store.put, data, key_prefix)

            artifact = DocumentArtifact.record(
                owner_document_id=snapshot.invoice_id,
                kind=kind,
                content_hash=content_hash,
                blob_key=stored.key,
                blob_location=stored.location,
                byte_size=stored.byte_size,
                file_name=self._file_name(snapshot, kind),
                sequence=(latest.sequence + 1) if latest is not None else 1,
                reason=reason,
            )
            repo.add(artifact)

        log.info("document_generated", artifact_id=str(artifact.id), reason=reason, byte_size=stored.byte_size)
        return self._reference(artifact, ttl, regenerated=True, content=data if include_content else None)

    def _reference(
        self,
        artifact: DocumentArtifact,
        ttl: int,
        regenerated: bool,
        content: bytes | None = None,
    ) -> DocumentReference:
        url = self.runner.call("blob.signed_url", self.blob_store.signed_url, artifact.blob_key, ttl, artifact.file_name)
        return DocumentReference(
            artifact_id=str(artifact.id),
            blob_key=artifact.blob_key,
            signed_url=url,
            content_hash=artifact.content_hash,
            file_name=artifact.file_name,
            byte_size=artifact.byte_size or 0,
            regenerated=regenerated,
            content=content,
        )

    def history(self, invoice_id: str, kind: DocumentKind | str) -> list[DocumentArtifact]:
        """All artifacts ever generated for the invoice and kind, oldest first."""
        kind = DocumentKind(kind.value if isinstance(kind, DocumentKind) else kind)
        with self.domain.domain_context():
            return self.domain.repository_for(DocumentArtifact).history_for(invoice_id, kind)
