"""Domain events for the Invoice aggregate.

All events are versioned, immutable facts representing invoice state changes.
"""

from protean.fields import Date, DateTime, Float, Identifier, Integer, String

from billing.domain import billing


@billing.event(part_of="Invoice")
class InvoiceCreated:
    """A new invoice was created and numbered."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    invoice_number = String(required=True)
    customer_id = Identifier(required=True)
    status = String(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    issued_date = Date(required=True)
    created_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class InvoiceUpdated:
    """Invoice content (items, modifiers, dates or notes) changed."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    invoice_number = String(required=True)
    amount = Float(required=True)
    item_count = Integer(required=True)
    issued_date = Date(required=True)
    updated_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class InvoiceStatusChanged:
    """The invoice moved along an edge of the transition table."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    invoice_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_by = String()
    note = String()
    changed_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class InvoicePaymentRecorded:
    """A payment was applied against the invoice balance."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    invoice_number = String(required=True)
    payment_id = Identifier(required=True)
    amount = Float(required=True)
    payment_method = String()
    paid_date = Date(required=True)
    amount_paid = Float(required=True)
    amount_due = Float(required=True)
    recorded_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class InvoiceReminderSent:
    """A payment reminder was sent to the customer."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    invoice_number = String(required=True)
    reminders_sent = Integer(required=True)
    sent_at = DateTime(required=True)


@billing.event(part_of="Invoice")
class InvoiceDeleted:
    """A draft invoice was soft-deleted."""

    __version__ = 1

    invoice_id = Identifier(required=True)
    invoice_number = String(required=True)
    deleted_at = DateTime(required=True)
