"""Invoice status summary: one flat row per live invoice for reporting."""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import Date, DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.invoice.events import InvoiceCreated, InvoiceDeleted, InvoiceStatusChanged, InvoiceUpdated
from billing.invoice.invoice import Invoice


@billing.projection
class InvoiceStatusSummary:
    invoice_id = Identifier(identifier=True, required=True)
    invoice_number = String(required=True)
    status = String(required=True)
    amount = Float(default=0.0)
    issued_date = Date(required=True)
    updated_at = DateTime()


@billing.projector(projector_for=InvoiceStatusSummary, aggregates=[Invoice])
class InvoiceStatusSummaryProjector:
    @on(InvoiceCreated)
    def on_invoice_created(self, event):
        current_domain.repository_for(InvoiceStatusSummary).add(
            InvoiceStatusSummary(
                invoice_id=event.invoice_id,
                invoice_number=event.invoice_number,
                status=event.status,
                amount=event.amount,
                issued_date=event.issued_date,
                updated_at=event.created_at,
            )
        )

    @on(InvoiceStatusChanged)
    def on_invoice_status_changed(self, event):
        repo = current_domain.repository_for(InvoiceStatusSummary)
        record = repo.get(event.invoice_id)
        record.status = event.new_status
        record.updated_at = event.changed_at
        repo.add(record)

    @on(InvoiceUpdated)
    def on_invoice_updated(self, event):
        repo = current_domain.repository_for(InvoiceStatusSummary)
        record = repo.get(event.invoice_id)
        record.amount = event.amount
        record.issued_date = event.issued_date
        record.updated_at = event.updated_at
        repo.add(record)

    @on(InvoiceDeleted)
    def on_invoice_deleted(self, event):
        """Deleted invoices drop out of every report."""
        repo = current_domain.repository_for(InvoiceStatusSummary)
        try:
            record = repo.get(event.invoice_id)
            repo._dao.delete(record)
        except ObjectNotFoundError:
            pass
