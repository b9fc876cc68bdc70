"""Quote creation: command and handler.

As with invoices, the caller supplies an already claimed quote number and a
taken number raises ``DocumentNumberCollisionError`` for the caller to retry.
"""

import json

from protean import handle
from protean.fields import Date, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.errors import DocumentNumberCollisionError
from billing.invoice.numbering import DocumentNumber
from billing.quote.quote import Quote


@billing.command(part_of="Quote")
class CreateQuote:
    quote_number = String(required=True, max_length=50)
    customer_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    items = Text(required=True)  # JSON: list of {description, quantity, unit_price, product_id?}
    issued_date = Date(required=True)
    valid_until = Date(required=True)
    gst_percent = Float(default=0.0)
    discount_amount = Float(default=0.0)
    currency = String(max_length=3, default="AUD")
    notes = Text()
    terms = Text()
    changed_by = String(max_length=255)


@billing.command_handler(part_of=Quote)
class CreateQuoteHandler:
    @handle(CreateQuote)
    def create_quote(self, command):
        repo = current_domain.repository_for(Quote)
        if repo.number_exists(command.quote_number):
            raise DocumentNumberCollisionError(command.quote_number, field="quote_number")

        number = DocumentNumber.parse(command.quote_number)
        quote = Quote.create(
            quote_number=command.quote_number,
            number_prefix=number.prefix,
            number_year=number.year,
            number_sequence=number.sequence,
            customer_id=command.customer_id,
            items_data=json.loads(command.items),
            issued_date=command.issued_date,
            valid_until=command.valid_until,
            gst_percent=command.gst_percent or 0.0,
            discount_amount=command.discount_amount or 0.0,
            currency=command.currency,
            customer_name=command.customer_name,
            customer_email=command.customer_email,
            notes=command.notes,
            terms=command.terms,
            changed_by=command.changed_by,
        )
        repo.add(quote)
        return str(quote.id)
