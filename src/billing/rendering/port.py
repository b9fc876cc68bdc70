"""Document renderer port (abstract interface).

A renderer is treated as a pure function of the snapshot: the same
snapshot and kind always produce an equivalent PDF.
"""

from abc import ABC, abstractmethod

from billing.document.artifact import DocumentKind
from billing.document.snapshot import DocumentSnapshot


class DocumentRenderer(ABC):
    """Abstract PDF renderer."""

    @abstractmethod
    def render(self, snapshot: DocumentSnapshot, kind: DocumentKind) -> bytes:
        """Render ``snapshot`` as a ``kind`` document and return the PDF bytes."""
        ...
