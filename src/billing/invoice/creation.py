"""Invoice creation and duplication: commands and handler.

The caller supplies an already claimed invoice number. A number that is
already taken raises ``DocumentNumberCollisionError`` so the caller can retry
the whole command with a fresh number in a new unit of work.
"""

import json
from datetime import date

from protean import handle
from protean.fields import Date, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.errors import DocumentNumberCollisionError
from billing.invoice.invoice import Invoice
from billing.invoice.numbering import DocumentNumber
from billing.invoice.status import InvoiceStatus


@billing.command(part_of="Invoice")
class CreateInvoice:
    """Create a numbered invoice with its line items."""

    invoice_number = String(required=True, max_length=50)
    customer_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    items = Text(required=True)  # JSON: list of {description, quantity, unit_price, product_id?}
    issued_date = Date(required=True)
    due_date = Date(required=True)
    gst_percent = Float(default=0.0)
    discount_amount = Float(default=0.0)
    currency = String(max_length=3, default="AUD")
    status = String(max_length=20, default=InvoiceStatus.DRAFT.value)
    notes = Text()
    internal_notes = Text()
    changed_by = String(max_length=255)


@billing.command(part_of="Invoice")
class DuplicateInvoice:
    """Copy an invoice's customer and items into a new DRAFT invoice."""

    source_invoice_id = Identifier(required=True)
    invoice_number = String(required=True, max_length=50)
    issued_date = Date(required=True)
    due_date = Date(required=True)
    changed_by = String(max_length=255)


def add_invoice(
    invoice_number: str,
    customer_id: str,
    items_data: list[dict],
    issued_date: date,
    due_date: date,
    **fields,
) -> Invoice:
    """Build and stage a new invoice under ``invoice_number`` in the current unit of work."""
    repo = current_domain.repository_for(Invoice)
    if repo.number_exists(invoice_number):
        raise DocumentNumberCollisionError(invoice_number)

    number = DocumentNumber.parse(invoice_number)
    invoice = Invoice.create(
        invoice_number=invoice_number,
        number_prefix=number.prefix,
        number_year=number.year,
        number_sequence=number.sequence,
        customer_id=customer_id,
        items_data=items_data,
        issued_date=issued_date,
        due_date=due_date,
        **fields,
    )
    repo.add(invoice)
    return invoice


@billing.command_handler(part_of=Invoice)
class CreateInvoiceHandler:
    @handle(CreateInvoice)
    def create_invoice(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        invoice = add_invoice(
            invoice_number=command.invoice_number,
            customer_id=command.customer_id,
            items_data=items_data,
            issued_date=command.issued_date,
            due_date=command.due_date,
            gst_percent=command.gst_percent or 0.0,
            discount_amount=command.discount_amount or 0.0,
            currency=command.currency,
            status=command.status or InvoiceStatus.DRAFT.value,
            customer_name=command.customer_name,
            customer_email=command.customer_email,
            notes=command.notes,
            internal_notes=command.internal_notes,
            changed_by=command.changed_by,
        )
        return str(invoice.id)

    @handle(DuplicateInvoice)
    def duplicate_invoice(self, command):
        source = current_domain.repository_for(Invoice).get_live(command.source_invoice_id)
        invoice = add_invoice(
            invoice_number=command.invoice_number,
            customer_id=source.customer_id,
            items_data=source.copyable_items(),
            issued_date=command.issued_date,
            due_date=command.due_date,
            gst_percent=source.gst_percent,
            discount_amount=source.discount_amount,
            currency=source.currency,
            customer_name=source.customer_name,
            customer_email=source.customer_email,
            notes=source.notes,
            internal_notes=source.internal_notes,
            changed_by=command.changed_by,
        )
        return str(invoice.id)
