"""Turning an accepted quote into a PENDING invoice.

The invoice and the CONVERTED quote are saved in the same unit of work, so a
quote is never marked converted without its invoice or the reverse.
"""

import structlog
from protean import handle
from protean.fields import Date, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.creation import add_invoice
from billing.invoice.status import InvoiceStatus
from billing.quote.quote import Quote

logger = structlog.get_logger(__name__)


@billing.command(part_of="Quote")
class ConvertQuoteToInvoice:
    quote_id = Identifier(required=True)
    invoice_number = String(required=True, max_length=50)
    issued_date = Date(required=True)
    due_date = Date(required=True)
    gst_percent = Float(min_value=0.0, max_value=100.0)
    discount_amount = Float(min_value=0.0)
    changed_by = String(max_length=255)
    expected_revision = Integer()


@billing.command_handler(part_of=Quote)
class QuoteConversionHandler:
    @handle(ConvertQuoteToInvoice)
    def convert(self, command):
        quotes = current_domain.repository_for(Quote)
        quote = quotes.get_for_update(command.quote_id, command.expected_revision)
        quote.ensure_convertible()

        invoice = add_invoice(
            invoice_number=command.invoice_number,
            customer_id=quote.customer_id,
            items_data=quote.copyable_items(),
            issued_date=command.issued_date,
            due_date=command.due_date,
            gst_percent=quote.gst_percent if command.gst_percent is None else command.gst_percent,
            discount_amount=quote.discount_amount if command.discount_amount is None else command.discount_amount,
            currency=quote.currency,
            status=InvoiceStatus.PENDING.value,
            customer_name=quote.customer_name,
            customer_email=quote.customer_email,
            notes=quote.notes,
            changed_by=command.changed_by,
        )
        quote.mark_converted(str(invoice.id), changed_by=command.changed_by)
        quotes.add(quote)

        logger.info(
            "quote_converted",
            quote_id=str(quote.id),
            quote_number=quote.quote_number,
            invoice_id=str(invoice.id),
            invoice_number=invoice.invoice_number,
        )
        return str(invoice.id)
