"""Soft deletion of draft invoices — command and handler."""

from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.invoice import Invoice


@billing.command(part_of="Invoice")
class DeleteInvoice:
    invoice_id = Identifier(required=True)
    expected_revision = Integer()


@billing.command_handler(part_of=Invoice)
class DeleteInvoiceHandler:
    @handle(DeleteInvoice)
    def delete_invoice(self, command):
        repo = current_domain.repository_for(Invoice)
        invoice = repo.get_for_update(command.invoice_id, command.expected_revision)
        invoice.soft_delete()
        repo.add(invoice)
        return True
