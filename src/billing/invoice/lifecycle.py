"""Status transitions — commands and handler.

Each command loads the invoice, validates the move against the transition
table and persists status, dates and the history row in one unit of work.
Same-state requests are no-ops and write nothing.
"""

import structlog
from protean import handle
from protean.fields import Date, Identifier, Integer, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.invoice import Invoice

logger = structlog.get_logger(__name__)


@billing.command(part_of="Invoice")
class MarkInvoicePending:
    invoice_id = Identifier(required=True)
    changed_by = String(max_length=255)
    expected_revision = Integer()


@billing.command(part_of="Invoice")
class MarkInvoiceOverdue:
    invoice_id = Identifier(required=True)
    as_of = Date(required=True)
    changed_by = String(max_length=255)
    expected_revision = Integer()


@billing.command(part_of="Invoice")
class MarkInvoicePaid:
    invoice_id = Identifier(required=True)
    paid_date = Date(required=True)
    payment_method = String(max_length=50)
    receipt_number = String(max_length=50)
    changed_by = String(max_length=255)
    expected_revision = Integer()


@billing.command(part_of="Invoice")
class CancelInvoice:
    invoice_id = Identifier(required=True)
    cancelled_date = Date(required=True)
    reason = String(max_length=500)
    changed_by = String(max_length=255)
    expected_revision = Integer()


@billing.command_handler(part_of=Invoice)
class InvoiceLifecycleHandler:
    def _apply(self, command, transition) -> None:
        repo = current_domain.repository_for(Invoice)
        invoice = repo.get_for_update(command.invoice_id, command.expected_revision)
        previous = invoice.status
        if transition(invoice):
            repo.add(invoice)
            logger.info(
                "invoice_status_changed",
                invoice_id=str(invoice.id),
                invoice_number=invoice.invoice_number,
                previous_status=previous,
                new_status=invoice.status,
            )

    @handle(MarkInvoicePending)
    def mark_pending(self, command):
        self._apply(command, lambda invoice: invoice.mark_pending(changed_by=command.changed_by))

    @handle(MarkInvoiceOverdue)
    def mark_overdue(self, command):
        self._apply(command, lambda invoice: invoice.mark_overdue(command.as_of, changed_by=command.changed_by))

    @handle(MarkInvoicePaid)
    def mark_paid(self, command):
        self._apply(
            command,
            lambda invoice: invoice.mark_paid(
                paid_date=command.paid_date,
                payment_method=command.payment_method,
                receipt_number=command.receipt_number,
                changed_by=command.changed_by,
            ),
        )

    @handle(CancelInvoice)
    def cancel(self, command):
        self._apply(
            command,
            lambda invoice: invoice.cancel(
                reason=command.reason,
                cancelled_date=command.cancelled_date,
                changed_by=command.changed_by,
            ),
        )
