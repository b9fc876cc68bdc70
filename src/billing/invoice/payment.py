"""Payment recording — command and handler."""

import structlog
from protean import handle
from protean.fields import Date, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.invoice import Invoice

logger = structlog.get_logger(__name__)


@billing.command(part_of="Invoice")
class RecordInvoicePayment:
    """Apply a payment; the invoice becomes PAID once the balance is within ``tolerance``."""

    invoice_id = Identifier(required=True)
    amount = Float(required=True)
    paid_date = Date(required=True)
    payment_method = String(max_length=50)
    notes = Text()
    idempotency_key = String(max_length=255)
    receipt_number = String(max_length=50)
    tolerance = Float(default=0.01)
    changed_by = String(max_length=255)
    expected_revision = Integer()


@billing.command_handler(part_of=Invoice)
class RecordInvoicePaymentHandler:
    @handle(RecordInvoicePayment)
    def record_payment(self, command):
        repo = current_domain.repository_for(Invoice)
        invoice = repo.get_for_update(command.invoice_id, command.expected_revision)

        applied = invoice.record_payment(
            amount=command.amount,
            paid_date=command.paid_date,
            payment_method=command.payment_method,
            notes=command.notes,
            idempotency_key=command.idempotency_key,
            tolerance=command.tolerance if command.tolerance is not None else 0.01,
            receipt_number=command.receipt_number,
            changed_by=command.changed_by,
        )
        if not applied:
            logger.info(
                "duplicate_payment_ignored",
                invoice_id=str(invoice.id),
                idempotency_key=command.idempotency_key,
            )
            return

        repo.add(invoice)
        logger.info(
            "invoice_payment_recorded",
            invoice_id=str(invoice.id),
            amount=command.amount,
            amount_due=invoice.amount_due,
            status=invoice.status,
        )
