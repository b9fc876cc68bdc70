"""Tests for Invoice creation, totals and content updates."""

from datetime import date

import pytest
from billing.errors import InvalidOperationError, StatusChangeNotAllowedError
from billing.invoice.events import InvoiceCreated, InvoiceUpdated
from billing.invoice.invoice import Invoice, normalize_line_items
from billing.invoice.status import InvoiceStatus
from protean.exceptions import ValidationError


def _invoice(items=None, **overrides):
    fields = {
        "invoice_number": "INV-2025-0001",
        "number_prefix": "INV",
        "number_year": 2025,
        "number_sequence": 1,
        "customer_id": "cust-001",
        "customer_name": "Ada Lovelace",
        "customer_email": "ada@example.com",
        "items_data": items
        if items is not None
        else [
            {"description": "Consulting", "quantity": 2, "unit_price": 50.0},
            {"description": "Travel", "quantity": 1, "unit_price": 25.0},
        ],
        "issued_date": date(2025, 1, 15),
        "due_date": date(2025, 2, 14),
        "gst_percent": 10.0,
        "discount_amount": 5.0,
    }
    fields.update(overrides)
    return Invoice.create(**fields)


class TestInvoiceCreation:
    def test_amount_is_sum_of_item_totals(self):
        invoice = _invoice()
        assert invoice.amount == 125.0

    def test_tax_and_discount_are_derived(self):
        invoice = _invoice()
        assert invoice.gst_amount == 12.5
        assert invoice.total_payable == 132.5
        assert invoice.amount_due == 132.5

    def test_item_totals_computed(self):
        invoice = _invoice()
        assert [item.total for item in invoice.ordered_items] == [100.0, 25.0]

    def test_items_keep_input_order(self):
        invoice = _invoice()
        assert [item.description for item in invoice.ordered_items] == ["Consulting", "Travel"]

    def test_defaults_to_draft(self):
        assert _invoice().status == InvoiceStatus.DRAFT.value

    def test_can_start_pending(self):
        assert _invoice(status="PENDING").status == InvoiceStatus.PENDING.value

    def test_cannot_start_paid(self):
        with pytest.raises(ValidationError) as exc:
            _invoice(status="PAID")
        assert "status" in exc.value.messages

    def test_first_history_row(self):
        invoice = _invoice(changed_by="clerk@example.com")
        assert len(invoice.status_history) == 1
        row = invoice.status_history[0]
        assert row.previous_status is None
        assert row.new_status == "DRAFT"
        assert row.note == "Invoice created"
        assert row.changed_by == "clerk@example.com"

    def test_payment_and_cancellation_fields_empty(self):
        invoice = _invoice()
        assert invoice.paid_date is None
        assert invoice.payment_method is None
        assert invoice.receipt_number is None
        assert invoice.cancelled_date is None
        assert invoice.cancel_reason is None

    def test_raises_created_event(self):
        invoice = _invoice()
        events = [e for e in invoice._events if isinstance(e, InvoiceCreated)]
        assert len(events) == 1
        assert events[0].invoice_number == "INV-2025-0001"
        assert events[0].amount == 125.0

    def test_empty_items_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _invoice(items=[])
        assert "items" in exc.value.messages

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValidationError):
            _invoice(items=[{"description": "Refund", "quantity": -1, "unit_price": 10.0}])

    def test_negative_unit_price_rejected(self):
        with pytest.raises(ValidationError):
            _invoice(items=[{"description": "Credit", "quantity": 1, "unit_price": -10.0}])

    def test_due_date_before_issue_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _invoice(due_date=date(2025, 1, 1))
        assert "due_date" in exc.value.messages


class TestNormalizeLineItems:
    def test_zero_quantity_allowed(self):
        items = normalize_line_items([{"description": "Free sample", "quantity": 0, "unit_price": 9.5}])
        assert items[0]["total"] == 0.0

    def test_missing_description_rejected(self):
        with pytest.raises(ValidationError):
            normalize_line_items([{"description": "  ", "quantity": 1, "unit_price": 1.0}])

    def test_empty_allowed_when_requested(self):
        assert normalize_line_items([], allow_empty=True) == []


class TestUpdateDetails:
    def test_amount_follows_items_for_many_items(self):
        invoice = _invoice()
        items = [{"description": f"Line {n}", "quantity": n % 7, "unit_price": n * 1.25} for n in range(50)]
        invoice.update_details(items_data=items)
        assert invoice.amount == pytest.approx(sum((n % 7) * (n * 1.25) for n in range(50)))
        assert len(invoice.items) == 50

    def test_update_to_no_items_zeroes_amount(self):
        invoice = _invoice()
        invoice.update_details(items_data=[])
        assert invoice.amount == 0
        assert len(invoice.items) == 0

    def test_kept_item_is_updated_in_place(self):
        invoice = _invoice()
        first = invoice.ordered_items[0]
        invoice.update_details(
            items_data=[{"id": str(first.id), "description": "Consulting (revised)", "quantity": 3, "unit_price": 50.0}]
        )
        assert len(invoice.items) == 1
        assert str(invoice.items[0].id) == str(first.id)
        assert invoice.items[0].total == 150.0
        assert invoice.amount == 150.0

    def test_unknown_item_id_rejected(self):
        invoice = _invoice()
        with pytest.raises(ValidationError) as exc:
            invoice.update_details(items_data=[{"id": "nope", "description": "X", "quantity": 1, "unit_price": 1.0}])
        assert "items" in exc.value.messages

    def test_status_change_not_allowed(self):
        invoice = _invoice()
        with pytest.raises(StatusChangeNotAllowedError):
            invoice.update_details(items_data=[], status="PAID")

    def test_matching_status_is_accepted(self):
        invoice = _invoice()
        invoice.update_details(items_data=[{"description": "A", "quantity": 1, "unit_price": 1.0}], status="DRAFT")
        assert invoice.amount == 1.0

    def test_terminal_invoice_cannot_be_edited(self):
        invoice = _invoice()
        invoice.cancel(reason="Duplicate", cancelled_date=date(2025, 1, 20))
        with pytest.raises(InvalidOperationError):
            invoice.update_details(items_data=[])

    def test_modifiers_update_totals(self):
        invoice = _invoice()
        invoice.update_details(items_data=invoice.copyable_items(), gst_percent=0.0, discount_amount=0.0)
        assert invoice.total_payable == 125.0

    def test_update_bumps_revision_and_raises_event(self):
        invoice = _invoice()
        invoice._events.clear()
        invoice.update_details(items_data=invoice.copyable_items())
        assert invoice.revision == 1
        assert any(isinstance(e, InvoiceUpdated) for e in invoice._events)


class TestQueryHelpers:
    def test_pending_invoice_past_due_is_overdue(self):
        invoice = _invoice(status="PENDING")
        assert invoice.is_overdue(today=date(2025, 3, 1))
        assert not invoice.is_overdue(today=date(2025, 2, 14))

    def test_draft_is_never_overdue(self):
        assert not _invoice().is_overdue(today=date(2026, 1, 1))

    def test_days_until_due(self):
        assert _invoice().days_until_due(today=date(2025, 2, 10)) == 4
