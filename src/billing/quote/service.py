"""Caller-facing quote operations.

Mirrors ``InvoiceLifecycle``: each operation processes one command in its
own unit of work and returns the refreshed aggregate. Converting a quote
claims an invoice number the same way invoice creation does.
"""

import json
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

import structlog
from protean.domain import Domain
from protean.exceptions import ExpectedVersionError, ValidationError

from billing.config import BillingSettings
from billing.errors import ConcurrentModificationError
from billing.invoice.numbering import NumberGenerator, create_numbered
from billing.invoice.service import CreatedInvoice
from billing.quote.conversion import ConvertQuoteToInvoice
from billing.quote.creation import CreateQuote
from billing.quote.lifecycle import AcceptQuote, CancelQuote, ExpireQuote, HoldQuote, RejectQuote, SendQuote
from billing.quote.quote import Quote

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CreatedQuote:
    id: str
    quote_number: str


class QuoteLifecycle:
    """Create, send, accept, reject, hold, cancel, expire and convert quotes."""

    def __init__(
        self,
        domain: Domain,
        settings: BillingSettings | None = None,
        number_generator: NumberGenerator | None = None,
        invoice_number_generator: NumberGenerator | None = None,
    ) -> None:
        self.domain = domain
        self.settings = settings or BillingSettings()
        self.numbers = number_generator or NumberGenerator(
            domain, width=self.settings.number_width, document_cls=Quote
        )
        self.invoice_numbers = invoice_number_generator or NumberGenerator(domain, width=self.settings.number_width)

    def _process(self, command):
        with self.domain.domain_context():
            try:
                return self.domain.process(command, asynchronous=False)
            except ConcurrentModificationError:
                raise
            except ExpectedVersionError as exc:
                quote_id = str(getattr(command, "quote_id", "") or "")
                raise ConcurrentModificationError(quote_id, None, None, entity="Quote") from exc

    def _today(self) -> date:
        return datetime.now(UTC).date()

    def get(self, quote_id: str) -> Quote:
        with self.domain.domain_context():
            return self.domain.repository_for(Quote).get_live(quote_id)

    def create(
        self,
        customer_id: str,
        items: list[dict],
        issued_date: date | None = None,
        valid_until: date | None = None,
        gst_percent: float = 0.0,
        discount_amount: float = 0.0,
        currency: str | None = None,
        customer_name: str | None = None,
        customer_email: str | None = None,
        notes: str | None = None,
        terms: str | None = None,
        changed_by: str | None = None,
    ) -> CreatedQuote:
        issued_date = issued_date or self._today()
        valid_until = valid_until or issued_date + timedelta(days=self.settings.quote_validity_days)
        items_json = json.dumps(items or [])

        quote_id, number = create_numbered(
            self.numbers,
            self.settings.quote_prefix,
            self.settings.max_number_attempts,
            lambda number: self._process(
                CreateQuote(
                    quote_number=number,
                    customer_id=customer_id,
                    customer_name=customer_name,
                    customer_email=customer_email,
                    items=items_json,
                    issued_date=issued_date,
                    valid_until=valid_until,
                    gst_percent=gst_percent,
                    discount_amount=discount_amount,
                    currency=currency or self.settings.default_currency,
                    notes=notes,
                    terms=terms,
                    changed_by=changed_by,
                )
            ),
            field="quote_number",
        )
        logger.info("quote_created", quote_id=quote_id, quote_number=number)
        return CreatedQuote(id=quote_id, quote_number=number)

    def send(self, quote_id: str, changed_by: str | None = None, expected_revision: int | None = None) -> Quote:
        self._process(SendQuote(quote_id=quote_id, changed_by=changed_by, expected_revision=expected_revision))
        return self.get(quote_id)

    def accept(
        self,
        quote_id: str,
        accepted_date: date | None = None,
        changed_by: str | None = None,
        expected_revision: int | None = None,
    ) -> Quote:
        self._process(
            AcceptQuote(
                quote_id=quote_id,
                accepted_date=accepted_date or self._today(),
                changed_by=changed_by,
                expected_revision=expected_revision,
            )
        )
        return self.get(quote_id)

    def reject(
        self,
        quote_id: str,
        reason: str,
        rejected_date: date | None = None,
        changed_by: str | None = None,
        expected_revision: int | None = None,
    ) -> Quote:
        self._process(
            RejectQuote(
                quote_id=quote_id,
                reason=reason,
                rejected_date=rejected_date or self._today(),
                changed_by=changed_by,
                expected_revision=expected_revision,
            )
        )
        return self.get(quote_id)

    def put_on_hold(
        self,
        quote_id: str,
        reason: str | None = None,
        changed_by: str | None = None,
        expected_revision: int | None = None,
    ) -> Quote:
        self._process(
            HoldQuote(quote_id=quote_id, reason=reason, changed_by=changed_by, expected_revision=expected_revision)
        )
        return self.get(quote_id)

    def cancel(
        self,
        quote_id: str,
        reason: str | None = None,
        changed_by: str | None = None,
        expected_revision: int | None = None,
    ) -> Quote:
        self._process(
            CancelQuote(quote_id=quote_id, reason=reason, changed_by=changed_by, expected_revision=expected_revision)
        )
        return self.get(quote_id)

    def convert_to_invoice(
        self,
        quote_id: str,
        due_date: date | None = None,
        gst_percent: float | None = None,
        discount_amount: float | None = None,
        changed_by: str | None = None,
        expected_revision: int | None = None,
    ) -> CreatedInvoice:
        """Create a PENDING invoice from an ACCEPTED quote and mark the quote CONVERTED."""
        issued_date = self._today()
        due_date = due_date or issued_date + timedelta(days=self.settings.default_due_days)

        invoice_id, number = create_numbered(
            self.invoice_numbers,
            self.settings.invoice_prefix,
            self.settings.max_number_attempts,
            lambda number: self._process(
                ConvertQuoteToInvoice(
                    quote_id=quote_id,
                    invoice_number=number,
                    issued_date=issued_date,
                    due_date=due_date,
                    gst_percent=gst_percent,
                    discount_amount=discount_amount,
                    changed_by=changed_by,
                    expected_revision=expected_revision,
                )
            ),
        )
        return CreatedInvoice(id=invoice_id, invoice_number=number)

    def expire_quotes(self, as_of: date | None = None) -> int:
        """Expire every live DRAFT or SENT quote whose validity ended before ``as_of``.

        Returns the number of quotes expired. A quote that changed since it
        was listed is left alone.
        """
        as_of = as_of or self._today()
        with self.domain.domain_context():
            candidates = [(str(q.id), q.revision) for q in self.domain.repository_for(Quote).expirable(as_of)]

        expired = 0
        for quote_id, revision in candidates:
            try:
                self._process(ExpireQuote(quote_id=quote_id, as_of=as_of, expected_revision=revision))
            except (ValidationError, ExpectedVersionError) as exc:
                logger.warning("quote_expiry_skipped", quote_id=quote_id, error=str(exc))
                continue
            expired += 1

        logger.info("quotes_expired", count=expired, as_of=as_of.isoformat())
        return expired
