"""Content hash over the fields a rendered document actually shows.

Status labels, timestamps, internal notes and reminder counters never
reach the PDF and are left out, so changing them does not invalidate a
cached artifact. Any change to a printed field changes the digest.
"""

import hashlib
import json
from datetime import date

from billing.document.artifact import DocumentKind
from billing.document.snapshot import DocumentSnapshot


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


class DocumentContentHasher:
    """SHA-256 over a canonical JSON rendering of the printed fields."""

    algorithm = "sha256"

    def fields(self, snapshot: DocumentSnapshot, kind: DocumentKind | str) -> dict:
        kind = DocumentKind(kind.value if isinstance(kind, DocumentKind) else kind)
        payload = {
            "kind": kind.value,
            "invoice_number": snapshot.invoice_number,
            "customer": {"name": snapshot.customer_name, "email": snapshot.customer_email},
            "currency": snapshot.currency,
            "issued_date": _iso(snapshot.issued_date),
            "due_date": _iso(snapshot.due_date),
            "items": [
                {
                    "description": line.description,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                    "total": line.total,
                }
                for line in snapshot.items
            ],
            "amount": snapshot.amount,
            "gst_percent": snapshot.gst_percent,
            "discount_amount": snapshot.discount_amount,
            "amount_paid": snapshot.amount_paid,
            "amount_due": snapshot.amount_due,
            "paid_date": _iso(snapshot.paid_date),
            "notes": snapshot.notes,
        }
        if kind == DocumentKind.RECEIPT:
            payload["payment_method"] = snapshot.payment_method
            payload["receipt_number"] = snapshot.receipt_number
            payload["payments"] = [
                {"amount": p.amount, "paid_date": _iso(p.paid_date), "payment_method": p.payment_method}
                for p in snapshot.payments
            ]
        return payload

    def hash(self, snapshot: DocumentSnapshot, kind: DocumentKind | str) -> str:
        canonical = json.dumps(self.fields(snapshot, kind), sort_keys=True, separators=(",", ":"))
        return hashlib.new(self.algorithm, canonical.encode("utf-8")).hexdigest()
