"""Payment reminders — command and handler.

Rate limiting (per document and per customer) is the caller's concern;
this handler only records that a reminder went out.
"""

from protean import handle
from protean.fields import DateTime, Identifier, Integer
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.invoice import Invoice


@billing.command(part_of="Invoice")
class SendInvoiceReminder:
    invoice_id = Identifier(required=True)
    sent_at = DateTime()
    expected_revision = Integer()


@billing.command_handler(part_of=Invoice)
class SendInvoiceReminderHandler:
    @handle(SendInvoiceReminder)
    def send_reminder(self, command):
        repo = current_domain.repository_for(Invoice)
        invoice = repo.get_for_update(command.invoice_id, command.expected_revision)
        invoice.record_reminder(sent_at=command.sent_at)
        repo.add(invoice)
