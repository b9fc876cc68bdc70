"""Tests for DocumentContentHasher."""

from dataclasses import replace
from datetime import date

import pytest
from billing.document.artifact import DocumentKind
from billing.document.hashing import DocumentContentHasher
from billing.document.snapshot import DocumentSnapshot, LineSnapshot, PaymentSnapshot
from billing.invoice.invoice import Invoice


@pytest.fixture()
def snapshot():
    return DocumentSnapshot(
        invoice_id="inv-001",
        invoice_number="INV-2025-0001",
        customer_name="Ada Lovelace",
        customer_email="ada@example.com",
        currency="AUD",
        issued_date=date(2025, 1, 15),
        due_date=date(2025, 2, 14),
        items=(
            LineSnapshot(description="Consulting", quantity=2, unit_price=50.0, total=100.0),
            LineSnapshot(description="Travel", quantity=1, unit_price=25.0, total=25.0),
        ),
        amount=125.0,
        gst_percent=10.0,
        gst_amount=12.5,
        discount_amount=5.0,
        total_payable=132.5,
        amount_paid=0.0,
        amount_due=132.5,
    )


@pytest.fixture()
def hasher():
    return DocumentContentHasher()


class TestHashStability:
    def test_same_snapshot_same_hash(self, hasher, snapshot):
        assert hasher.hash(snapshot, DocumentKind.INVOICE) == hasher.hash(snapshot, DocumentKind.INVOICE)

    def test_is_sha256_hex(self, hasher, snapshot):
        digest = hasher.hash(snapshot, DocumentKind.INVOICE)
        assert len(digest) == 64
        int(digest, 16)

    def test_kind_accepts_string(self, hasher, snapshot):
        assert hasher.hash(snapshot, "INVOICE") == hasher.hash(snapshot, DocumentKind.INVOICE)

    def test_invoice_and_receipt_differ(self, hasher, snapshot):
        assert hasher.hash(snapshot, DocumentKind.INVOICE) != hasher.hash(snapshot, DocumentKind.RECEIPT)


class TestHashSensitivity:
    @pytest.mark.parametrize(
        "changes",
        [
            {"invoice_number": "INV-2025-0002"},
            {"customer_name": "Grace Hopper"},
            {"customer_email": "grace@example.com"},
            {"currency": "NZD"},
            {"due_date": date(2025, 3, 1)},
            {"gst_percent": 15.0},
            {"discount_amount": 0.0},
            {"notes": "Thank you for your business"},
        ],
    )
    def test_printed_field_changes_hash(self, hasher, snapshot, changes):
        assert hasher.hash(replace(snapshot, **changes), "INVOICE") != hasher.hash(snapshot, "INVOICE")

    def test_item_description_changes_hash(self, hasher, snapshot):
        items = (replace(snapshot.items[0], description="Consulting (senior)"), snapshot.items[1])
        assert hasher.hash(replace(snapshot, items=items), "INVOICE") != hasher.hash(snapshot, "INVOICE")

    def test_item_order_changes_hash(self, hasher, snapshot):
        reordered = replace(snapshot, items=tuple(reversed(snapshot.items)))
        assert hasher.hash(reordered, "INVOICE") != hasher.hash(snapshot, "INVOICE")

    def test_payment_method_only_affects_receipts(self, hasher, snapshot):
        with_method = replace(snapshot, payment_method="card")
        assert hasher.hash(with_method, "INVOICE") == hasher.hash(snapshot, "INVOICE")
        assert hasher.hash(with_method, "RECEIPT") != hasher.hash(snapshot, "RECEIPT")

    def test_receipt_payments_affect_receipt_hash(self, hasher, snapshot):
        paid = replace(snapshot, payments=(PaymentSnapshot(amount=10.0, paid_date=date(2025, 1, 20), payment_method="cash"),))
        assert hasher.hash(paid, "RECEIPT") != hasher.hash(snapshot, "RECEIPT")


class TestNonRenderingFields:
    def _invoice(self):
        return Invoice.create(
            invoice_number="INV-2025-0001",
            number_prefix="INV",
            number_year=2025,
            number_sequence=1,
            customer_id="cust-001",
            customer_name="Ada Lovelace",
            items_data=[{"description": "Consulting", "quantity": 2, "unit_price": 50.0}],
            issued_date=date(2025, 1, 15),
            due_date=date(2025, 2, 14),
            internal_notes="Call before sending",
        )

    def test_reminders_do_not_change_hash(self, hasher):
        invoice = self._invoice()
        invoice.mark_pending()
        before = hasher.hash(DocumentSnapshot.from_invoice(invoice), "INVOICE")
        invoice.record_reminder()
        assert hasher.hash(DocumentSnapshot.from_invoice(invoice), "INVOICE") == before

    def test_status_does_not_change_hash(self, hasher):
        invoice = self._invoice()
        before = hasher.hash(DocumentSnapshot.from_invoice(invoice), "INVOICE")
        invoice.mark_pending()
        assert hasher.hash(DocumentSnapshot.from_invoice(invoice), "INVOICE") == before

    def test_internal_notes_do_not_change_hash(self, hasher):
        invoice = self._invoice()
        before = hasher.hash(DocumentSnapshot.from_invoice(invoice), "INVOICE")
        invoice.internal_notes = "Changed internal note"
        assert hasher.hash(DocumentSnapshot.from_invoice(invoice), "INVOICE") == before

    def test_description_edit_changes_hash(self, hasher):
        invoice = self._invoice()
        before = hasher.hash(DocumentSnapshot.from_invoice(invoice), "INVOICE")
        item = invoice.items[0]
        invoice.update_details(
            items_data=[{"id": str(item.id), "description": "Advisory", "quantity": 2, "unit_price": 50.0}]
        )
        assert hasher.hash(DocumentSnapshot.from_invoice(invoice), "INVOICE") != before
