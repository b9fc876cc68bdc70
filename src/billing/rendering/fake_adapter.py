"""Fake renderer for development and testing.

Produces a tiny deterministic pseudo-PDF and records every call, so tests
can assert how often rendering actually happened.
"""

import hashlib
import time

from billing.document.artifact import DocumentKind
from billing.document.snapshot import DocumentSnapshot
from billing.rendering.port import DocumentRenderer


class FakeRenderer(DocumentRenderer):
    def __init__(self) -> None:
        self.should_fail: bool = False
        self.failure_reason: str = "Renderer unavailable"
        self.delay_seconds: float = 0.0
        self.calls: list[dict] = []

    def configure(self, should_fail: bool = False, failure_reason: str = "Renderer unavailable", delay_seconds: float = 0.0) -> None:
        self.should_fail = should_fail
        self.failure_reason = failure_reason
        self.delay_seconds = delay_seconds

    def render(self, snapshot: DocumentSnapshot, kind: DocumentKind) -> bytes:
        self.calls.append({"method": "render", "invoice_number": snapshot.invoice_number, "kind": kind.value})
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        if self.should_fail:
            raise RuntimeError(self.failure_reason)

        digest = hashlib.sha256(repr(snapshot).encode("utf-8")).hexdigest()
        return f"%PDF-1.4\n% {kind.value} {snapshot.invoice_number} {digest}\n%%EOF\n".encode()
