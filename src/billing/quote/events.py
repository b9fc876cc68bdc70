"""Domain events for the Quote aggregate."""

from protean.fields import Date, DateTime, Float, Identifier, String

from billing.domain import billing


@billing.event(part_of="Quote")
class QuoteCreated:
    """A new quote was created and numbered."""

    __version__ = 1

    quote_id = Identifier(required=True)
    quote_number = String(required=True)
    customer_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    valid_until = Date(required=True)
    created_at = DateTime(required=True)


@billing.event(part_of="Quote")
class QuoteStatusChanged:
    """The quote moved along an edge of the quote transition table."""

    __version__ = 1

    quote_id = Identifier(required=True)
    quote_number = String(required=True)
    previous_status = String()
    new_status = String(required=True)
    changed_by = String()
    note = String()
    changed_at = DateTime(required=True)


@billing.event(part_of="Quote")
class QuoteConverted:
    """An accepted quote became an invoice."""

    __version__ = 1

    quote_id = Identifier(required=True)
    quote_number = String(required=True)
    invoice_id = Identifier(required=True)
    converted_at = DateTime(required=True)
