"""Invoice aggregate — line items, totals, payments and the status machine.

The aggregate is the transactional boundary for an invoice: status, items
and totals always change together inside one unit of work. Status moves only
along the edges of ``INVOICE_TRANSITIONS``; PAID and CANCELLED are terminal.

Totals:
    amount        = Σ item.quantity * item.unit_price
    gst_amount    = amount * gst_percent / 100
    total_payable = amount + gst_amount - discount_amount
    amount_due    = max(total_payable - amount_paid, 0)
"""

from datetime import UTC, date, datetime
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Date, DateTime, Float, HasMany, Identifier, Integer, String, Text

from billing.domain import billing
from billing.errors import InvalidOperationError, StatusChangeNotAllowedError, TerminalStateError
from billing.invoice.events import (
    InvoiceCreated,
    InvoiceDeleted,
    InvoicePaymentRecorded,
    InvoiceReminderSent,
    InvoiceStatusChanged,
    InvoiceUpdated,
)
from billing.invoice.status import INVOICE_TRANSITIONS, InvoiceStatus

_CREATABLE_STATUSES = {InvoiceStatus.DRAFT, InvoiceStatus.PENDING}
_REMINDABLE_STATUSES = {InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.OVERDUE}


def normalize_line_items(items_data: list[dict], allow_empty: bool = False) -> list[dict]:
    """Validate raw line items and return them with computed totals."""
    if not items_data and not allow_empty:
        raise ValidationError({"items": ["An invoice must have at least one line item"]})

    normalized = []
    errors: list[str] = []
    for position, data in enumerate(items_data or []):
        description = (data.get("description") or "").strip()
        quantity = data.get("quantity")
        unit_price = data.get("unit_price")

        if not description:
            errors.append(f"Item {position + 1}: description is required")
        if quantity is None or float(quantity) < 0:
            errors.append(f"Item {position + 1}: quantity must be zero or greater")
        if unit_price is None or float(unit_price) < 0:
            errors.append(f"Item {position + 1}: unit price must be zero or greater")
        if errors:
            continue

        quantity, unit_price = float(quantity), float(unit_price)
        normalized.append(
            {
                "id": data.get("id"),
                "description": description,
                "quantity": quantity,
                "unit_price": unit_price,
                "total": quantity * unit_price,
                "product_id": data.get("product_id"),
                "position": position,
            }
        )

    if errors:
        raise ValidationError({"items": errors})
    return normalized


@billing.entity(part_of="Invoice")
class InvoiceItem:
    """A line on an invoice. ``product_id`` is a weak link to the catalog."""

    description = String(required=True, max_length=500)
    quantity = Float(required=True, min_value=0.0)
    unit_price = Float(required=True, min_value=0.0)
    total = Float(required=True)
    position = Integer(default=0)
    product_id = Identifier()


@billing.entity(part_of="Invoice")
class InvoicePayment:
    """A payment applied against the invoice balance."""

    amount = Float(required=True, min_value=0.0)
    payment_method = String(max_length=50)
    paid_date = Date(required=True)
    notes = Text()
    idempotency_key = String(max_length=255)
    recorded_at = DateTime()


@billing.entity(part_of="Invoice")
class StatusChange:
    """One row of the append-only status history."""

    previous_status = String(max_length=20)
    new_status = String(required=True, max_length=20)
    changed_at = DateTime(required=True)
    changed_by = String(max_length=255)
    note = String(max_length=1000)


@billing.aggregate
class Invoice:
    invoice_number = String(required=True, max_length=50, unique=True)
    number_prefix = String(required=True, max_length=10)
    number_year = Integer(required=True)
    number_sequence = Integer(required=True)
    customer_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    status = String(choices=InvoiceStatus, default=InvoiceStatus.DRAFT.value)
    currency = String(max_length=3, default="AUD")
    items = HasMany(InvoiceItem)
    payments = HasMany(InvoicePayment)
    status_history = HasMany(StatusChange)
    amount = Float(default=0.0)
    gst_percent = Float(default=0.0, min_value=0.0)
    discount_amount = Float(default=0.0, min_value=0.0)
    amount_paid = Float(default=0.0)
    amount_due = Float(default=0.0)
    issued_date = Date(required=True)
    due_date = Date(required=True)
    paid_date = Date()
    payment_method = String(max_length=50)
    receipt_number = String(max_length=50)
    cancelled_date = Date()
    cancel_reason = String(max_length=500)
    reminders_sent = Integer(default=0, min_value=0)
    last_reminder_at = DateTime()
    notes = Text()
    internal_notes = Text()
    revision = Integer(default=0)
    deleted_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def payment_details_only_when_paid(self):
        paid = self.status == InvoiceStatus.PAID.value
        if paid and self.paid_date is None:
            raise ValidationError({"paid_date": ["A PAID invoice must have a paid date"]})
        if not paid and (self.paid_date is not None or self.receipt_number):
            raise ValidationError({"paid_date": ["Payment details are only set on PAID invoices"]})

    @invariant.post
    def cancellation_details_only_when_cancelled(self):
        cancelled = self.status == InvoiceStatus.CANCELLED.value
        if not cancelled and (self.cancelled_date is not None or self.cancel_reason):
            raise ValidationError({"cancel_reason": ["Cancellation details are only set on CANCELLED invoices"]})

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def ordered_items(self) -> list[InvoiceItem]:
        return sorted(self.items, key=lambda item: item.position or 0)

    @property
    def gst_amount(self) -> float:
        return round((self.amount or 0.0) * (self.gst_percent or 0.0) / 100, 2)

    @property
    def total_payable(self) -> float:
        return round((self.amount or 0.0) + self.gst_amount - (self.discount_amount or 0.0), 2)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_terminal(self) -> bool:
        return INVOICE_TRANSITIONS.is_terminal(self.status)

    def is_overdue(self, today: date | None = None) -> bool:
        """True when the due date has passed and the invoice is still collectable."""
        today = today or datetime.now(UTC).date()
        if InvoiceStatus(self.status) in (InvoiceStatus.DRAFT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            return False
        return self.due_date < today

    def days_until_due(self, today: date | None = None) -> int:
        today = today or datetime.now(UTC).date()
        return (self.due_date - today).days

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        invoice_number: str,
        number_prefix: str,
        number_year: int,
        number_sequence: int,
        customer_id: str,
        items_data: list[dict],
        issued_date: date,
        due_date: date,
        gst_percent: float = 0.0,
        discount_amount: float = 0.0,
        currency: str = "AUD",
        status: str = InvoiceStatus.DRAFT.value,
        customer_name: str | None = None,
        customer_email: str | None = None,
        notes: str | None = None,
        internal_notes: str | None = None,
        changed_by: str | None = None,
    ):
        """Create a numbered invoice with its line items and first history row."""
        items = normalize_line_items(items_data)
        if InvoiceStatus(status) not in _CREATABLE_STATUSES:
            raise ValidationError({"status": [f"New invoices must start as DRAFT or PENDING, not {status}"]})
        if due_date < issued_date:
            raise ValidationError({"due_date": ["Due date cannot be before the issued date"]})

        now = datetime.now(UTC)
        invoice = cls(
            invoice_number=invoice_number,
            number_prefix=number_prefix,
            number_year=number_year,
            number_sequence=number_sequence,
            customer_id=customer_id,
            customer_name=customer_name,
            customer_email=customer_email,
            status=status,
            currency=currency,
            gst_percent=gst_percent or 0.0,
            discount_amount=discount_amount or 0.0,
            issued_date=issued_date,
            due_date=due_date,
            notes=notes,
            internal_notes=internal_notes,
            created_at=now,
            updated_at=now,
        )

        with atomic_change(invoice):
            for data in items:
                invoice.add_items(_new_item(data))
            invoice._recalculate_totals()
            invoice.add_status_history(
                StatusChange(
                    previous_status=None,
                    new_status=status,
                    changed_at=now,
                    changed_by=changed_by,
                    note="Invoice created",
                )
            )

        invoice.raise_(
            InvoiceCreated(
                invoice_id=str(invoice.id),
                invoice_number=invoice_number,
                customer_id=str(customer_id),
                status=status,
                amount=invoice.amount,
                currency=currency,
                issued_date=issued_date,
                created_at=now,
            )
        )
        return invoice

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _recalculate_totals(self) -> None:
        self.amount = sum(item.total for item in self.ordered_items)
        self.amount_due = max(round(self.total_payable - (self.amount_paid or 0.0), 2), 0.0)

    def _touch(self, now: datetime) -> None:
        self.revision = (self.revision or 0) + 1
        self.updated_at = now

    def _transition(self, target: InvoiceStatus, now: datetime, changed_by: str | None, note: str | None) -> bool:
        """Move to ``target`` and append a history row. Returns False for a same-state no-op."""
        INVOICE_TRANSITIONS.validate_transition(self.status, target)
        previous = self.status
        if previous == target.value:
            return False

        self.status = target.value
        self.add_status_history(
            StatusChange(
                previous_status=previous,
                new_status=target.value,
                changed_at=now,
                changed_by=changed_by,
                note=note,
            )
        )
        self.raise_(
            InvoiceStatusChanged(
                invoice_id=str(self.id),
                invoice_number=self.invoice_number,
                previous_status=previous,
                new_status=target.value,
                changed_by=changed_by,
                note=note,
                changed_at=now,
            )
        )
        return True

    def _settle(self, paid_date: date, payment_method: str | None, receipt_number: str | None) -> None:
        self.paid_date = paid_date
        self.payment_method = payment_method
        self.receipt_number = self.receipt_number or receipt_number or generate_receipt_number()

    # -------------------------------------------------------------------
    # Content updates
    # -------------------------------------------------------------------
    def update_details(
        self,
        items_data: list[dict],
        status: str | None = None,
        gst_percent: float | None = None,
        discount_amount: float | None = None,
        issued_date: date | None = None,
        due_date: date | None = None,
        customer_name: str | None = None,
        customer_email: str | None = None,
        notes: str | None = None,
        internal_notes: str | None = None,
    ) -> None:
        """Synchronise line items and content fields; status is never changed here.

        Items carrying an ``id`` are kept and updated in place, items without
        one are added, and existing items missing from ``items_data`` are removed.
        """
        if status is not None and status != self.status:
            raise StatusChangeNotAllowedError(self.status, status)
        if self.is_terminal:
            raise InvalidOperationError(f"Invoice {self.invoice_number} is {self.status} and can no longer be edited")

        items = normalize_line_items(items_data, allow_empty=True)
        existing = {str(item.id): item for item in self.items}
        kept_ids = {str(data["id"]) for data in items if data["id"]}
        unknown = kept_ids - set(existing)
        if unknown:
            raise ValidationError({"items": [f"Unknown item id {item_id}" for item_id in sorted(unknown)]})

        new_issued = issued_date or self.issued_date
        new_due = due_date or self.due_date
        if new_due < new_issued:
            raise ValidationError({"due_date": ["Due date cannot be before the issued date"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            for item_id, item in existing.items():
                if item_id not in kept_ids:
                    self.remove_items(item)

            for data in items:
                if data["id"]:
                    item = existing[str(data["id"])]
                    item.description = data["description"]
                    item.quantity = data["quantity"]
                    item.unit_price = data["unit_price"]
                    item.total = data["total"]
                    item.position = data["position"]
                    item.product_id = data["product_id"]
                else:
                    self.add_items(_new_item(data))

            if gst_percent is not None:
                self.gst_percent = gst_percent
            if discount_amount is not None:
                self.discount_amount = discount_amount
            self.issued_date = new_issued
            self.due_date = new_due
            if customer_name is not None:
                self.customer_name = customer_name
            if customer_email is not None:
                self.customer_email = customer_email
            if notes is not None:
                self.notes = notes
            if internal_notes is not None:
                self.internal_notes = internal_notes

            self._recalculate_totals()
            self._touch(now)

        self.raise_(
            InvoiceUpdated(
                invoice_id=str(self.id),
                invoice_number=self.invoice_number,
                amount=self.amount,
                item_count=len(self.items),
                issued_date=self.issued_date,
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------
    def mark_pending(self, changed_by: str | None = None, note: str | None = None) -> bool:
        now = datetime.now(UTC)
        with atomic_change(self):
            changed = self._transition(InvoiceStatus.PENDING, now, changed_by, note)
            if changed:
                self._touch(now)
        return changed

    def mark_overdue(self, as_of: date, changed_by: str | None = None) -> bool:
        if self.status == InvoiceStatus.OVERDUE.value:
            return False
        INVOICE_TRANSITIONS.validate_transition(self.status, InvoiceStatus.OVERDUE)
        if as_of <= self.due_date:
            raise ValidationError({"due_date": [f"Invoice is not overdue until after {self.due_date.isoformat()}"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self._transition(InvoiceStatus.OVERDUE, now, changed_by, f"Overdue as of {as_of.isoformat()}")
            self._touch(now)
        return True

    def mark_paid(
        self,
        paid_date: date,
        payment_method: str | None = None,
        receipt_number: str | None = None,
        changed_by: str | None = None,
    ) -> bool:
        """Settle the full balance. Already PAID is a no-op; terminal or illegal moves raise."""
        if self.status == InvoiceStatus.PAID.value:
            return False
        INVOICE_TRANSITIONS.validate_transition(self.status, InvoiceStatus.PAID)

        now = datetime.now(UTC)
        with atomic_change(self):
            self._transition(InvoiceStatus.PAID, now, changed_by, "Marked as paid")
            self._settle(paid_date, payment_method, receipt_number)
            self.amount_paid = max(self.amount_paid or 0.0, self.total_payable)
            self.amount_due = 0.0
            self._touch(now)
        return True

    def cancel(self, reason: str, cancelled_date: date, changed_by: str | None = None) -> bool:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError({"reason": ["A cancellation reason is required"]})
        if self.status == InvoiceStatus.CANCELLED.value:
            return False
        INVOICE_TRANSITIONS.validate_transition(self.status, InvoiceStatus.CANCELLED)

        now = datetime.now(UTC)
        with atomic_change(self):
            self._transition(InvoiceStatus.CANCELLED, now, changed_by, f"Cancelled: {reason}")
            self.cancelled_date = cancelled_date
            self.cancel_reason = reason
            self._touch(now)
        return True

    def record_payment(
        self,
        amount: float,
        paid_date: date,
        payment_method: str | None = None,
        notes: str | None = None,
        idempotency_key: str | None = None,
        tolerance: float = 0.01,
        receipt_number: str | None = None,
        changed_by: str | None = None,
    ) -> bool:
        """Apply a payment and move to PARTIALLY_PAID or PAID.

        Returns False when ``idempotency_key`` matches an earlier payment.
        """
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Payment amount must be greater than zero"]})
        if idempotency_key and any(p.idempotency_key == idempotency_key for p in self.payments):
            return False
        if self.is_terminal:
            raise TerminalStateError(
                self.status,
                self.status,
                f"Cannot record a payment on a {self.status} invoice as it is a terminal state",
            )

        amount_paid = round((self.amount_paid or 0.0) + amount, 2)
        amount_due = round(self.total_payable - amount_paid, 2)
        target = InvoiceStatus.PAID if amount_due <= tolerance else InvoiceStatus.PARTIALLY_PAID
        INVOICE_TRANSITIONS.validate_transition(self.status, target)

        now = datetime.now(UTC)
        payment = InvoicePayment(
            amount=amount,
            payment_method=payment_method,
            paid_date=paid_date,
            notes=notes,
            idempotency_key=idempotency_key,
            recorded_at=now,
        )
        with atomic_change(self):
            self.add_payments(payment)
            self.amount_paid = amount_paid
            self.amount_due = max(amount_due, 0.0)
            note = f"Payment of {amount:.2f} {self.currency} received"
            self._transition(target, now, changed_by, note)
            if target == InvoiceStatus.PAID:
                self._settle(paid_date, payment_method, receipt_number)
            self._touch(now)

        self.raise_(
            InvoicePaymentRecorded(
                invoice_id=str(self.id),
                invoice_number=self.invoice_number,
                payment_id=str(payment.id),
                amount=amount,
                payment_method=payment_method,
                paid_date=paid_date,
                amount_paid=self.amount_paid,
                amount_due=self.amount_due,
                recorded_at=now,
            )
        )
        return True

    def record_reminder(self, sent_at: datetime | None = None) -> None:
        if InvoiceStatus(self.status) not in _REMINDABLE_STATUSES:
            raise InvalidOperationError(f"Reminders cannot be sent for {self.status} invoices")

        now = sent_at or datetime.now(UTC)
        self.reminders_sent = (self.reminders_sent or 0) + 1
        self.last_reminder_at = now
        self._touch(now)
        self.raise_(
            InvoiceReminderSent(
                invoice_id=str(self.id),
                invoice_number=self.invoice_number,
                reminders_sent=self.reminders_sent,
                sent_at=now,
            )
        )

    def soft_delete(self) -> None:
        if self.status != InvoiceStatus.DRAFT.value:
            raise InvalidOperationError(
                f"Only DRAFT invoices can be deleted. Use cancel for {self.status} invoice {self.invoice_number}"
            )

        now = datetime.now(UTC)
        self.deleted_at = now
        self._touch(now)
        self.raise_(
            InvoiceDeleted(
                invoice_id=str(self.id),
                invoice_number=self.invoice_number,
                deleted_at=now,
            )
        )

    def copyable_items(self) -> list[dict]:
        """Line items in a shape accepted by ``create``, without identities."""
        return [
            {
                "description": item.description,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "product_id": item.product_id,
            }
            for item in self.ordered_items
        ]


def _new_item(data: dict) -> InvoiceItem:
    return InvoiceItem(
        description=data["description"],
        quantity=data["quantity"],
        unit_price=data["unit_price"],
        total=data["total"],
        position=data["position"],
        product_id=data["product_id"],
    )


def generate_receipt_number(prefix: str = "RCP") -> str:
    return f"{prefix}-{uuid4().hex[:8].upper()}"
