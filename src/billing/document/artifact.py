"""DocumentArtifact aggregate — one rendered PDF for one content hash.

A new artifact row is appended whenever the content hash changes or the
stored blob goes missing; earlier rows are kept as the record of what was
sent. The artifact with the highest ``sequence`` for an owner and kind is
the one served.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, Integer, String

from billing.domain import billing


class DocumentKind(Enum):
    INVOICE = "INVOICE"
    RECEIPT = "RECEIPT"


@billing.event(part_of="DocumentArtifact")
class DocumentArtifactGenerated:
    """A document was rendered and stored for a new content hash."""

    __version__ = 1

    artifact_id = Identifier(required=True)
    owner_document_id = Identifier(required=True)
    kind = String(required=True)
    content_hash = String(required=True)
    blob_key = String(required=True)
    sequence = Integer(required=True)
    reason = String(required=True)
    generated_at = DateTime(required=True)


@billing.aggregate
class DocumentArtifact:
    owner_document_id = Identifier(required=True)
    kind = String(required=True, choices=DocumentKind)
    content_hash = String(required=True, max_length=128)
    blob_key = String(required=True, max_length=500)
    blob_location = String(max_length=1000)
    byte_size = Integer(default=0, min_value=0)
    file_name = String(max_length=255)
    sequence = Integer(required=True, min_value=1)
    created_at = DateTime()

    @classmethod
    def record(
        cls,
        owner_document_id: str,
        kind: DocumentKind,
        content_hash: str,
        blob_key: str,
        blob_location: str | None,
        byte_size: int,
        file_name: str,
        sequence: int,
        reason: str,
    ):
        now = datetime.now(UTC)
        artifact = cls(
            owner_document_id=owner_document_id,
            kind=kind.value,
            content_hash=content_hash,
            blob_key=blob_key,
            blob_location=blob_location,
            byte_size=byte_size,
            file_name=file_name,
            sequence=sequence,
            created_at=now,
        )
        artifact.raise_(
            DocumentArtifactGenerated(
                artifact_id=str(artifact.id),
                owner_document_id=str(owner_document_id),
                kind=kind.value,
                content_hash=content_hash,
                blob_key=blob_key,
                sequence=sequence,
                reason=reason,
                generated_at=now,
            )
        )
        return artifact


@billing.repository(part_of=DocumentArtifact)
class DocumentArtifactRepository:
    def latest_for(self, owner_document_id: str, kind: DocumentKind) -> DocumentArtifact | None:
        results = (
            self._dao.query.filter(owner_document_id=str(owner_document_id), kind=kind.value)
            .order_by("-sequence")
            .limit(1)
            .all()
        )
        return results.items[0] if results.items else None

    def history_for(self, owner_document_id: str, kind: DocumentKind) -> list[DocumentArtifact]:
        """Every artifact generated for the owner and kind, oldest first."""
        return (
            self._dao.query.filter(owner_document_id=str(owner_document_id), kind=kind.value)
            .order_by("sequence")
            .limit(1000)
            .all()
            .items
        )
