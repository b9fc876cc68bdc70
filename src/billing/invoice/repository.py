"""Repository for the Invoice aggregate."""

from protean.exceptions import ObjectNotFoundError

from billing.domain import billing
from billing.errors import ConcurrentModificationError, NotFoundError
from billing.invoice.invoice import Invoice


@billing.repository(part_of=Invoice)
class InvoiceRepository:
    """Invoice persistence with the lookups numbering and editing need.

    Soft-deleted invoices are invisible to ``get_live``.
    """

    def get_live(self, invoice_id: str) -> Invoice:
        try:
            invoice = self.get(invoice_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError("Invoice", str(invoice_id)) from exc
        if invoice.is_deleted:
            raise NotFoundError("Invoice", str(invoice_id))
        return invoice

    def get_for_update(self, invoice_id: str, expected_revision: int | None = None) -> Invoice:
        """Load a live invoice, failing when it no longer matches the revision the caller read."""
        invoice = self.get_live(invoice_id)
        if expected_revision is not None and invoice.revision != expected_revision:
            raise ConcurrentModificationError(str(invoice_id), expected_revision, invoice.revision)
        return invoice

    def latest_sequence(self, prefix: str, year: int) -> int:
        """Highest sequence issued for ``prefix`` in ``year``, or 0 when none exists."""
        results = (
            self._dao.query.filter(number_prefix=prefix, number_year=year)
            .order_by("-number_sequence")
            .limit(1)
            .all()
        )
        return results.items[0].number_sequence if results.items else 0

    def number_exists(self, invoice_number: str) -> bool:
        return bool(self._dao.query.filter(invoice_number=invoice_number).all().items)

