"""Invoice content updates — command and handler."""

import json

from protean import handle
from protean.fields import Date, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.invoice import Invoice


@billing.command(part_of="Invoice")
class UpdateInvoice:
    """Replace an invoice's line items and content fields.

    ``status`` is accepted only so a mismatch can be rejected; status changes
    go through the lifecycle commands.
    """

    invoice_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {id?, description, quantity, unit_price, product_id?}
    status = String(max_length=20)
    gst_percent = Float()
    discount_amount = Float()
    issued_date = Date()
    due_date = Date()
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    notes = Text()
    internal_notes = Text()
    expected_revision = Integer()


@billing.command_handler(part_of=Invoice)
class UpdateInvoiceHandler:
    @handle(UpdateInvoice)
    def update_invoice(self, command):
        repo = current_domain.repository_for(Invoice)
        invoice = repo.get_for_update(command.invoice_id, command.expected_revision)

        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        invoice.update_details(
            items_data=items_data,
            status=command.status,
            gst_percent=command.gst_percent,
            discount_amount=command.discount_amount,
            issued_date=command.issued_date,
            due_date=command.due_date,
            customer_name=command.customer_name,
            customer_email=command.customer_email,
            notes=command.notes,
            internal_notes=command.internal_notes,
        )
        repo.add(invoice)
