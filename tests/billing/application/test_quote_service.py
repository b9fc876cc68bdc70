"""Application tests for quote numbering, lifecycle, conversion and expiry."""

from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, date, datetime, timedelta

import pytest
from billing.domain import billing
from billing.errors import ConcurrentModificationError, InvalidOperationError, InvalidTransitionError, NotFoundError
from billing.invoice.invoice import Invoice
from billing.invoice.status import InvoiceStatus, QuoteStatus
from billing.quote.quote import Quote
from billing.quote.service import QuoteLifecycle
from protean import current_domain

YEAR = datetime.now(UTC).year
ITEMS = [
    {"description": "Design", "quantity": 3, "unit_price": 40.0},
    {"description": "Print run", "quantity": 1, "unit_price": 30.0},
]


@pytest.fixture()
def quotes(billing_bed, settings):
    return QuoteLifecycle(billing, settings=settings)


def _create(quotes, **overrides):
    fields = {
        "customer_id": "cust-001",
        "customer_name": "Grace Hopper",
        "items": ITEMS,
        "issued_date": date(2025, 1, 10),
        "valid_until": date(2025, 2, 9),
        "gst_percent": 10.0,
    }
    fields.update(overrides)
    return quotes.create(**fields)


def _accepted(quotes, **overrides):
    quote_id = _create(quotes, **overrides).id
    quotes.send(quote_id)
    quotes.accept(quote_id, accepted_date=date(2025, 1, 20))
    return quote_id


def _count(aggregate_cls):
    return len(current_domain.repository_for(aggregate_cls)._dao.query.all().items)


class TestCreateQuote:
    def test_numbers_use_quote_prefix(self, quotes):
        numbers = [_create(quotes).quote_number for _ in range(3)]
        assert numbers == [f"QUO-{YEAR}-0001", f"QUO-{YEAR}-0002", f"QUO-{YEAR}-0003"]

    def test_quote_numbers_are_independent_of_invoices(self, quotes, make_invoice):
        make_invoice()
        assert _create(quotes).quote_number == f"QUO-{YEAR}-0001"

    def test_default_validity_from_settings(self, quotes):
        quote = quotes.get(quotes.create(customer_id="cust-001", items=ITEMS).id)
        assert quote.valid_until - quote.issued_date == timedelta(days=quotes.settings.quote_validity_days)

    def test_concurrent_creates_get_distinct_numbers(self, settings):
        def create(_):
            with billing.domain_context():
                return _create(QuoteLifecycle(billing, settings=settings)).quote_number

        with ThreadPoolExecutor(max_workers=8) as pool:
            numbers = list(pool.map(create, range(16)))

        assert sorted(numbers) == [f"QUO-{YEAR}-{n:04d}" for n in range(1, 17)]
        assert _count(Quote) == 16


class TestQuoteLifecycle:
    def test_send_hold_accept(self, quotes):
        quote_id = _create(quotes).id
        quotes.send(quote_id)
        quotes.put_on_hold(quote_id, reason="Waiting on budget sign-off")
        quote = quotes.accept(quote_id, accepted_date=date(2025, 1, 25))

        assert quote.status == QuoteStatus.ACCEPTED.value
        assert [h.new_status for h in sorted(quote.status_history, key=lambda h: h.changed_at)] == [
            "DRAFT",
            "SENT",
            "ON_HOLD",
            "ACCEPTED",
        ]

    def test_reject_persists_reason(self, quotes):
        quote_id = _create(quotes).id
        quotes.send(quote_id)
        quote = quotes.reject(quote_id, reason="Went with another supplier", rejected_date=date(2025, 1, 21))
        assert quote.status == QuoteStatus.REJECTED.value
        assert quote.reject_reason == "Went with another supplier"

    def test_cancel_without_reason(self, quotes):
        quote = quotes.cancel(_create(quotes).id)
        assert quote.status == QuoteStatus.CANCELLED.value

    def test_illegal_transition_is_refused(self, quotes):
        with pytest.raises(InvalidTransitionError):
            quotes.accept(_create(quotes).id)

    def test_stale_revision_is_refused(self, quotes):
        quote_id = _create(quotes).id
        quotes.send(quote_id)
        with pytest.raises(ConcurrentModificationError):
            quotes.cancel(quote_id, expected_revision=0)

    def test_unknown_quote(self, quotes):
        with pytest.raises(NotFoundError):
            quotes.send("missing-quote")


class TestConvertQuote:
    def test_creates_pending_invoice_from_quote(self, quotes):
        quote_id = _accepted(quotes, discount_amount=5.0)

        created = quotes.convert_to_invoice(quote_id, due_date=date.today() + timedelta(days=14))

        invoice = current_domain.repository_for(Invoice).get(created.id)
        assert created.invoice_number == f"INV-{YEAR}-0001"
        assert invoice.status == InvoiceStatus.PENDING.value
        assert invoice.customer_name == "Grace Hopper"
        assert invoice.amount == 150.0
        assert invoice.gst_percent == 10.0
        assert invoice.discount_amount == 5.0
        assert [item.description for item in invoice.ordered_items] == ["Design", "Print run"]

        quote = quotes.get(quote_id)
        assert quote.status == QuoteStatus.CONVERTED.value
        assert str(quote.converted_invoice_id) == created.id

    def test_overrides_gst_and_discount(self, quotes):
        created = quotes.convert_to_invoice(_accepted(quotes), gst_percent=0.0, discount_amount=20.0)
        invoice = current_domain.repository_for(Invoice).get(created.id)
        assert invoice.gst_percent == 0.0
        assert invoice.total_payable == 130.0

    def test_takes_next_invoice_number(self, quotes, make_invoice):
        make_invoice()
        created = quotes.convert_to_invoice(_accepted(quotes))
        assert created.invoice_number == f"INV-{YEAR}-0002"

    def test_unaccepted_quote_creates_no_invoice(self, quotes):
        quote_id = _create(quotes).id
        quotes.send(quote_id)

        with pytest.raises(InvalidTransitionError):
            quotes.convert_to_invoice(quote_id)

        assert _count(Invoice) == 0
        assert quotes.get(quote_id).status == QuoteStatus.SENT.value

    def test_second_conversion_creates_no_invoice(self, quotes):
        quote_id = _accepted(quotes)
        quotes.convert_to_invoice(quote_id)

        with pytest.raises(InvalidOperationError):
            quotes.convert_to_invoice(quote_id)

        assert _count(Invoice) == 1


class TestExpireQuotes:
    def test_expires_lapsed_draft_and_sent_quotes(self, quotes):
        draft = _create(quotes).id
        sent = _create(quotes).id
        quotes.send(sent)
        still_valid = _create(quotes, valid_until=date(2025, 3, 31)).id
        accepted = _accepted(quotes)

        expired = quotes.expire_quotes(as_of=date(2025, 2, 10))

        assert expired == 2
        assert quotes.get(draft).status == QuoteStatus.EXPIRED.value
        assert quotes.get(sent).status == QuoteStatus.EXPIRED.value
        assert quotes.get(still_valid).status == QuoteStatus.DRAFT.value
        assert quotes.get(accepted).status == QuoteStatus.ACCEPTED.value

    def test_quote_is_valid_through_its_last_day(self, quotes):
        _create(quotes)
        assert quotes.expire_quotes(as_of=date(2025, 2, 9)) == 0

    def test_second_run_expires_nothing(self, quotes):
        _create(quotes)
        quotes.expire_quotes(as_of=date(2025, 2, 10))
        assert quotes.expire_quotes(as_of=date(2025, 2, 10)) == 0
