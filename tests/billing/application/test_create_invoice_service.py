"""Application tests for invoice creation, numbering and duplication."""

from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, date, datetime

import pytest
from billing.domain import billing
from billing.config import BillingSettings
from billing.errors import DocumentNumberCollisionError, NumberGenerationExhaustedError
from billing.invoice.invoice import Invoice
from billing.invoice.numbering import NumberGenerator, is_number_collision
from billing.invoice.service import InvoiceLifecycle
from billing.invoice.status import InvoiceStatus
from protean import current_domain
from protean.exceptions import TransactionError, ValidationError

ISSUED = date(2025, 1, 15)
DUE = date(2025, 2, 14)
EXAMPLE_ITEMS = [
    {"description": "Consulting", "quantity": 2, "unit_price": 50.0},
    {"description": "Travel", "quantity": 1, "unit_price": 25.0},
]

YEAR = datetime.now(UTC).year


def _count_invoices():
    return len(current_domain.repository_for(Invoice)._dao.query.all().items)


class FixedNumbers(NumberGenerator):
    """Hands out a scripted sequence of numbers."""

    def __init__(self, *numbers):
        super().__init__(billing)
        self.numbers = list(numbers)
        self.calls = 0

    def generate(self, prefix):
        self.calls += 1
        return self.numbers.pop(0)


class RacingGenerator(NumberGenerator):
    """Lets a rival creator take the generated number before it is used, once."""

    def __init__(self, domain, rival):
        super().__init__(domain)
        self.rival = rival
        self.raced = False

    def generate(self, prefix):
        number = super().generate(prefix)
        if not self.raced:
            self.raced = True
            self.rival.create(customer_id="cust-rival", items=EXAMPLE_ITEMS, issued_date=ISSUED, due_date=DUE)
        return number


def _create(lifecycle, **overrides):
    fields = {"customer_id": "cust-001", "items": EXAMPLE_ITEMS, "issued_date": ISSUED, "due_date": DUE}
    fields.update(overrides)
    return lifecycle.create(**fields)


class TestCreateInvoice:
    def test_returns_id_and_number(self, lifecycle):
        created = _create(lifecycle)
        assert created.id
        assert created.invoice_number == f"INV-{YEAR}-0001"

    def test_persists_items_and_amount(self, lifecycle):
        created = _create(lifecycle, gst_percent=10.0, discount_amount=5.0)
        invoice = lifecycle.get(created.id)
        assert invoice.amount == 125.0
        assert invoice.total_payable == 132.5
        assert len(invoice.items) == 2
        assert invoice.status == InvoiceStatus.DRAFT.value

    def test_persists_history_row(self, lifecycle):
        invoice = lifecycle.get(_create(lifecycle, changed_by="clerk").id)
        assert len(invoice.status_history) == 1
        assert invoice.status_history[0].note == "Invoice created"

    def test_default_dates(self, lifecycle):
        created = lifecycle.create(customer_id="cust-001", items=EXAMPLE_ITEMS)
        invoice = lifecycle.get(created.id)
        assert (invoice.due_date - invoice.issued_date).days == lifecycle.settings.default_due_days

    def test_default_currency_from_settings(self, lifecycle):
        invoice = lifecycle.get(_create(lifecycle).id)
        assert invoice.currency == "AUD"

    def test_empty_items_rejected_and_nothing_persisted(self, lifecycle):
        with pytest.raises(ValidationError):
            _create(lifecycle, items=[])
        assert _count_invoices() == 0

    def test_negative_price_rejected(self, lifecycle):
        with pytest.raises(ValidationError):
            _create(lifecycle, items=[{"description": "Bad", "quantity": 1, "unit_price": -5}])
        assert _count_invoices() == 0


class TestNumbering:
    def test_numbers_are_sequential(self, lifecycle):
        numbers = [_create(lifecycle).invoice_number for _ in range(3)]
        assert numbers == [f"INV-{YEAR}-0001", f"INV-{YEAR}-0002", f"INV-{YEAR}-0003"]

    def test_hundred_documents_get_distinct_gapless_numbers(self, lifecycle):
        numbers = [_create(lifecycle).invoice_number for _ in range(100)]
        assert len(set(numbers)) == 100
        assert numbers == [f"INV-{YEAR}-{n:04d}" for n in range(1, 101)]

    def test_collision_is_retried_with_fresh_number(self, settings):
        rival = InvoiceLifecycle(billing, settings=settings)
        lifecycle = InvoiceLifecycle(billing, settings=settings, number_generator=RacingGenerator(billing, rival))

        created = _create(lifecycle)

        assert created.invoice_number == f"INV-{YEAR}-0002"
        assert _count_invoices() == 2

    def test_scripted_collisions_resolve_within_budget(self, lifecycle, settings):
        _create(lifecycle)
        taken = f"INV-{YEAR}-0001"
        numbers = FixedNumbers(taken, taken, f"INV-{YEAR}-0002")
        retrying = InvoiceLifecycle(billing, settings=settings, number_generator=numbers)

        created = _create(retrying)

        assert created.invoice_number == f"INV-{YEAR}-0002"
        assert numbers.calls == 3

    def test_exhausted_after_three_collisions(self, lifecycle, settings):
        _create(lifecycle)
        taken = f"INV-{YEAR}-0001"
        numbers = FixedNumbers(taken, taken, taken, f"INV-{YEAR}-0002")
        retrying = InvoiceLifecycle(billing, settings=settings, number_generator=numbers)

        with pytest.raises(NumberGenerationExhaustedError) as exc:
            _create(retrying)

        assert exc.value.attempts == 3
        assert numbers.calls == 3
        assert _count_invoices() == 1

    def test_generator_is_scoped_by_year(self, lifecycle):
        _create(lifecycle)
        next_year = NumberGenerator(billing, clock=lambda: datetime(YEAR + 1, 1, 1, tzinfo=UTC))
        assert str(next_year.generate("INV")) == f"INV-{YEAR + 1}-0001"

    def test_generator_is_scoped_by_prefix(self, lifecycle):
        _create(lifecycle)
        assert str(NumberGenerator(billing).generate("QUO")) == f"QUO-{YEAR}-0001"

    def test_concurrent_creates_get_distinct_numbers(self, settings):
        def create(_):
            with billing.domain_context():
                return _create(InvoiceLifecycle(billing, settings=settings)).invoice_number

        with ThreadPoolExecutor(max_workers=10) as pool:
            numbers = list(pool.map(create, range(30)))

        assert len(set(numbers)) == 30
        assert sorted(numbers) == [f"INV-{YEAR}-{n:04d}" for n in range(1, 31)]
        assert _count_invoices() == 30

    def test_overlong_number_is_a_validation_error_not_a_collision(self):
        lifecycle = InvoiceLifecycle(billing, settings=BillingSettings(invoice_prefix="X" * 60))

        with pytest.raises(ValidationError) as exc:
            _create(lifecycle)

        assert not isinstance(exc.value, DocumentNumberCollisionError)
        assert "invoice_number" in exc.value.messages
        assert _count_invoices() == 0


class TestCollisionClassification:
    def test_collision_error_for_same_field(self):
        assert is_number_collision(DocumentNumberCollisionError("INV-2025-0001"))

    def test_collision_error_for_other_field(self):
        error = DocumentNumberCollisionError("QUO-2025-0001", field="quote_number")
        assert not is_number_collision(error, field="invoice_number")

    def test_store_duplicate_report(self):
        error = ValidationError({"invoice_number": ["Invoice with invoice_number 'INV-2025-0001' is already present."]})
        assert is_number_collision(error)

    def test_length_violation_is_not_a_collision(self):
        error = ValidationError({"invoice_number": ["value has more than 50 characters"]})
        assert not is_number_collision(error)

    def test_unique_violation_on_commit(self):
        error = TransactionError("commit failed", extra_info={"original_exception": "IntegrityError"})
        assert is_number_collision(error)

    def test_other_commit_failure(self):
        error = TransactionError("commit failed", extra_info={"original_exception": "OperationalError"})
        assert not is_number_collision(error)


class TestDuplicateInvoice:
    def test_duplicate_is_fresh_draft(self, lifecycle):
        source = lifecycle.get(_create(lifecycle, gst_percent=10.0).id)
        lifecycle.mark_as_pending(source.id)
        lifecycle.record_payment(source.id, amount=20.0, method="cash", paid_date=ISSUED)

        copy = lifecycle.duplicate(source.id)
        invoice = lifecycle.get(copy.id)

        assert copy.invoice_number == f"INV-{YEAR}-0002"
        assert invoice.status == InvoiceStatus.DRAFT.value
        assert invoice.amount == 125.0
        assert invoice.amount_paid == 0.0
        assert len(invoice.payments) == 0
        assert [i.description for i in invoice.ordered_items] == ["Consulting", "Travel"]
