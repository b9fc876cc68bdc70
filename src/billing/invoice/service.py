"""Caller-facing invoice lifecycle operations.

``InvoiceLifecycle`` is constructed with the Protean domain it works
against (and optionally a number generator and settings), so tests and
request handlers each bring their own store. Every operation is a single
command processed synchronously inside one unit of work and returns the
refreshed aggregate, whose ``revision`` callers can hand back as
``expected_revision`` for optimistic concurrency.
"""

import json
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

import structlog
from protean.domain import Domain
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.exceptions import InvalidOperationError as ProteanInvalidOperationError

from billing.config import BillingSettings
from billing.errors import (
    ConcurrentModificationError,
    InvalidOperationError,
)
from billing.invoice.creation import CreateInvoice, DuplicateInvoice
from billing.invoice.deletion import DeleteInvoice
from billing.invoice.invoice import Invoice, generate_receipt_number
from billing.invoice.lifecycle import CancelInvoice, MarkInvoiceOverdue, MarkInvoicePaid, MarkInvoicePending
from billing.invoice.modification import UpdateInvoice
from billing.invoice.numbering import NumberGenerator, create_numbered
from billing.invoice.payment import RecordInvoicePayment
from billing.invoice.reminders import SendInvoiceReminder
from billing.invoice.status import INVOICE_TRANSITIONS, InvoiceStatus

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CreatedInvoice:
    id: str
    invoice_number: str


@dataclass(frozen=True)
class BulkStatusResult:
    invoice_id: str
    success: bool
    error: str | None = None


def _error_message(exc: Exception) -> str:
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        return "; ".join(str(message) for values in messages.values() for message in values)
    return str(messages or exc)


class InvoiceLifecycle:
    """Create, edit, pay, cancel, remind and delete invoices."""

    def __init__(
        self,
        domain: Domain,
        settings: BillingSettings | None = None,
        number_generator: NumberGenerator | None = None,
    ) -> None:
        self.domain = domain
        self.settings = settings or BillingSettings()
        self.numbers = number_generator or NumberGenerator(domain, width=self.settings.number_width)

    # -------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------
    def _process(self, command):
        with self.domain.domain_context():
            try:
                return self.domain.process(command, asynchronous=False)
            except ConcurrentModificationError:
                raise
            except ExpectedVersionError as exc:
                invoice_id = str(getattr(command, "invoice_id", "") or "")
                raise ConcurrentModificationError(invoice_id, None, None) from exc

    def _create_numbered(self, build_command) -> CreatedInvoice:
        """Process a creation command under a claimed number, regenerating it after each collision."""
        invoice_id, number = create_numbered(
            self.numbers,
            self.settings.invoice_prefix,
            self.settings.max_number_attempts,
            lambda number: self._process(build_command(number)),
        )
        logger.info("invoice_created", invoice_id=invoice_id, invoice_number=number)
        return CreatedInvoice(id=invoice_id, invoice_number=number)

    def _today(self) -> date:
        return datetime.now(UTC).date()

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get(self, invoice_id: str) -> Invoice:
        """Return a live invoice or raise ``NotFoundError``."""
        with self.domain.domain_context():
            return self.domain.repository_for(Invoice).get_live(invoice_id)

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------
    def create(
        self,
        customer_id: str,
        items: list[dict],
        issued_date: date | None = None,
        due_date: date | None = None,
        gst_percent: float = 0.0,
        discount_amount: float = 0.0,
        currency: str | None = None,
        status: str = InvoiceStatus.DRAFT.value,
        customer_name: str | None = None,
        customer_email: str | None = None,
        notes: str | None = None,
        internal_notes: str | None = None,
        changed_by: str | None = None,
    ) -> CreatedInvoice:
        issued_date = issued_date or self._today()
        due_date = due_date or issued_date + timedelta(days=self.settings.default_due_days)
        items_json = json.dumps(items or [])

        def build(number: str) -> CreateInvoice:
            return CreateInvoice(
                invoice_number=number,
                customer_id=customer_id,
                customer_name=customer_name,
                customer_email=customer_email,
                items=items_json,
                issued_date=issued_date,
                due_date=due_date,
                gst_percent=gst_percent,
                discount_amount=discount_amount,
                currency=currency or self.settings.default_currency,
                status=status,
                notes=notes,
                internal_notes=internal_notes,
                changed_by=changed_by,
            )

        return self._create_numbered(build)

    def duplicate(self, invoice_id: str, changed_by: str | None = None) -> CreatedInvoice:
        """Copy an invoice into a new DRAFT with a fresh number and reset payments."""
        issued_date = self._today()
        due_date = issued_date + timedelta(days=self.settings.default_due_days)

        def build(number: str) -> DuplicateInvoice:
            return DuplicateInvoice(
                source_invoice_id=invoice_id,
                invoice_number=number,
                issued_date=issued_date,
                due_date=due_date,
                changed_by=changed_by,
            )

        return self._create_numbered(build)

    def update_with_items(
        self,
        invoice_id: str,
        items: list[dict],
        status: str | None = None,
        gst_percent: float | None = None,
        discount_amount: float | None = None,
        issued_date: date | None = None,
        due_date: date | None = None,
        customer_name: str | None = None,
        customer_email: str | None = None,
        notes: str | None = None,
        internal_notes: str | None = None,
        expected_revision: int | None = None,
    ) -> Invoice:
        self._process(
            UpdateInvoice(
                invoice_id=invoice_id,
                items=json.dumps(items or []),
                status=status,
                gst_percent=gst_percent,
                discount_amount=discount_amount,
                issued_date=issued_date,
                due_date=due_date,
                customer_name=customer_name,
                customer_email=customer_email,
                notes=notes,
                internal_notes=internal_notes,
                expected_revision=expected_revision,
            )
        )
        return self.get(invoice_id)

    def mark_as_paid(
        self,
        invoice_id: str,
        paid_date: date,
        payment_method: str | None = None,
        changed_by: str | None = None,
        expected_revision: int | None = None,
    ) -> Invoice:
        self._process(
            MarkInvoicePaid(
                invoice_id=invoice_id,
                paid_date=paid_date,
                payment_method=payment_method,
                receipt_number=generate_receipt_number(self.settings.receipt_prefix),
                changed_by=changed_by,
                expected_revision=expected_revision,
            )
        )
        return self.get(invoice_id)

    def mark_as_pending(
        self,
        invoice_id: str,
        changed_by: str | None = None,
        expected_revision: int | None = None,
    ) -> Invoice:
        self._process(
            MarkInvoicePending(
                invoice_id=invoice_id,
                changed_by=changed_by,
                expected_revision=expected_revision,
            )
        )
        return self.get(invoice_id)

    def mark_as_overdue(
        self,
        invoice_id: str,
        as_of: date | None = None,
        changed_by: str | None = None,
        expected_revision: int | None = None,
    ) -> Invoice:
        self._process(
            MarkInvoiceOverdue(
                invoice_id=invoice_id,
                as_of=as_of or self._today(),
                changed_by=changed_by,
                expected_revision=expected_revision,
            )
        )
        return self.get(invoice_id)

    def cancel(
        self,
        invoice_id: str,
        cancelled_date: date,
        reason: str,
        changed_by: str | None = None,
        expected_revision: int | None = None,
    ) -> Invoice:
        self._process(
            CancelInvoice(
                invoice_id=invoice_id,
                cancelled_date=cancelled_date,
                reason=reason,
                changed_by=changed_by,
                expected_revision=expected_revision,
            )
        )
        return self.get(invoice_id)

    def record_payment(
        self,
        invoice_id: str,
        amount: float,
        method: str | None,
        paid_date: date,
        notes: str | None = None,
        idempotency_key: str | None = None,
        changed_by: str | None = None,
        expected_revision: int | None = None,
    ) -> Invoice:
        self._process(
            RecordInvoicePayment(
                invoice_id=invoice_id,
                amount=amount,
                paid_date=paid_date,
                payment_method=method,
                notes=notes,
                idempotency_key=idempotency_key,
                receipt_number=generate_receipt_number(self.settings.receipt_prefix),
                tolerance=self.settings.payment_tolerance,
                changed_by=changed_by,
                expected_revision=expected_revision,
            )
        )
        return self.get(invoice_id)

    def send_reminder(self, invoice_id: str, expected_revision: int | None = None) -> Invoice:
        self._process(SendInvoiceReminder(invoice_id=invoice_id, expected_revision=expected_revision))
        return self.get(invoice_id)

    def soft_delete(self, invoice_id: str, expected_revision: int | None = None) -> bool:
        self._process(DeleteInvoice(invoice_id=invoice_id, expected_revision=expected_revision))
        logger.info("invoice_deleted", invoice_id=invoice_id)
        return True

    def bulk_update_status(
        self,
        invoice_ids: list[str],
        status: InvoiceStatus | str,
        changed_by: str | None = None,
    ) -> list[BulkStatusResult]:
        """Move each invoice to ``status`` on its own, reporting success per invoice.

        An invoice already in ``status`` succeeds without a write. A missing
        invoice or an illegal transition fails that invoice only.
        """
        target = InvoiceStatus(status.value if isinstance(status, InvoiceStatus) else status)
        today = self._today()
        results = []
        for invoice_id in invoice_ids:
            try:
                current = self.get(invoice_id).status
                if current != target.value:
                    self._apply_status(invoice_id, current, target, today, changed_by)
            except (ValidationError, ObjectNotFoundError, ProteanInvalidOperationError, ExpectedVersionError) as exc:
                logger.info("invoice_bulk_status_skipped", invoice_id=invoice_id, status=target.value, reason=_error_message(exc))
                results.append(BulkStatusResult(invoice_id=invoice_id, success=False, error=_error_message(exc)))
                continue
            results.append(BulkStatusResult(invoice_id=invoice_id, success=True))
        return results

    def _apply_status(
        self,
        invoice_id: str,
        current: str,
        target: InvoiceStatus,
        today: date,
        changed_by: str | None,
    ) -> None:
        if target == InvoiceStatus.PENDING:
            self.mark_as_pending(invoice_id, changed_by=changed_by)
        elif target == InvoiceStatus.OVERDUE:
            self.mark_as_overdue(invoice_id, as_of=today, changed_by=changed_by)
        elif target == InvoiceStatus.PAID:
            self.mark_as_paid(invoice_id, paid_date=today, changed_by=changed_by)
        elif target == InvoiceStatus.CANCELLED:
            self.cancel(invoice_id, cancelled_date=today, reason="Bulk status update", changed_by=changed_by)
        else:
            INVOICE_TRANSITIONS.validate_transition(current, target)
            raise InvalidOperationError(f"{target.value} is reached by recording a payment, not by a status change")
