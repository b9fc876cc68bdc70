"""Quote aggregate — a priced offer that can be accepted and turned into an invoice.

Status moves only along the edges of ``QUOTE_TRANSITIONS``; CANCELLED and
CONVERTED are terminal. Totals follow the invoice formula:

    amount        = Σ item.quantity * item.unit_price
    total_payable = amount + amount * gst_percent / 100 - discount_amount
"""

from datetime import UTC, date, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Date, DateTime, Float, HasMany, Identifier, Integer, String, Text

from billing.domain import billing
from billing.errors import InvalidOperationError
from billing.invoice.invoice import normalize_line_items
from billing.invoice.status import QUOTE_TRANSITIONS, QuoteStatus
from billing.quote.events import QuoteConverted, QuoteCreated, QuoteStatusChanged

_EXPIRABLE_STATUSES = (QuoteStatus.DRAFT, QuoteStatus.SENT)
_REASON_MAX_LENGTH = 500


def _clean_reason(reason: str | None, required: bool = False) -> str | None:
    reason = (reason or "").strip()
    if required and not reason:
        raise ValidationError({"reason": ["A reason is required"]})
    if len(reason) > _REASON_MAX_LENGTH:
        raise ValidationError({"reason": [f"Reason cannot be longer than {_REASON_MAX_LENGTH} characters"]})
    return reason or None


@billing.entity(part_of="Quote")
class QuoteItem:
    description = String(required=True, max_length=500)
    quantity = Float(required=True, min_value=0.0)
    unit_price = Float(required=True, min_value=0.0)
    total = Float(required=True)
    position = Integer(default=0)
    product_id = Identifier()


@billing.entity(part_of="Quote")
class QuoteStatusChange:
    previous_status = String(max_length=20)
    new_status = String(required=True, max_length=20)
    changed_at = DateTime(required=True)
    changed_by = String(max_length=255)
    note = String(max_length=1000)


@billing.aggregate
class Quote:
    quote_number = String(required=True, max_length=50, unique=True)
    number_prefix = String(required=True, max_length=10)
    number_year = Integer(required=True)
    number_sequence = Integer(required=True)
    customer_id = Identifier(required=True)
    customer_name = String(max_length=255)
    customer_email = String(max_length=255)
    status = String(choices=QuoteStatus, default=QuoteStatus.DRAFT.value)
    currency = String(max_length=3, default="AUD")
    items = HasMany(QuoteItem)
    status_history = HasMany(QuoteStatusChange)
    amount = Float(default=0.0)
    gst_percent = Float(default=0.0, min_value=0.0)
    discount_amount = Float(default=0.0, min_value=0.0)
    issued_date = Date(required=True)
    valid_until = Date(required=True)
    accepted_date = Date()
    rejected_date = Date()
    reject_reason = String(max_length=500)
    converted_invoice_id = Identifier()
    notes = Text()
    terms = Text()
    revision = Integer(default=0)
    deleted_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def conversion_details_only_when_converted(self):
        converted = self.status == QuoteStatus.CONVERTED.value
        if converted != (self.converted_invoice_id is not None):
            raise ValidationError({"converted_invoice_id": ["Only a CONVERTED quote references an invoice"]})

    @property
    def ordered_items(self) -> list[QuoteItem]:
        return sorted(self.items, key=lambda item: item.position or 0)

    @property
    def total_payable(self) -> float:
        gst_amount = round((self.amount or 0.0) * (self.gst_percent or 0.0) / 100, 2)
        return round((self.amount or 0.0) + gst_amount - (self.discount_amount or 0.0), 2)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_terminal(self) -> bool:
        return QUOTE_TRANSITIONS.is_terminal(self.status)

    def is_expired_on(self, today: date) -> bool:
        """True when the quote is still open but its validity has lapsed."""
        return QuoteStatus(self.status) in _EXPIRABLE_STATUSES and self.valid_until < today

    @classmethod
    def create(
        cls,
        quote_number: str,
        number_prefix: str,
        number_year: int,
        number_sequence: int,
        customer_id: str,
        items_data: list[dict],
        issued_date: date,
        valid_until: date,
        gst_percent: float = 0.0,
        discount_amount: float = 0.0,
        currency: str = "AUD",
        customer_name: str | None = None,
        customer_email: str | None = None,
        notes: str | None = None,
        terms: str | None = None,
        changed_by: str | None = None,
    ):
        """Create a numbered DRAFT quote with its line items and first history row."""
        if not items_data:
            raise ValidationError({"items": ["A quote must have at least one line item"]})
        items = normalize_line_items(items_data)
        if valid_until < issued_date:
            raise ValidationError({"valid_until": ["Valid-until date cannot be before the issued date"]})

        now = datetime.now(UTC)
        quote = cls(
            quote_number=quote_number,
            number_prefix=number_prefix,
            number_year=number_year,
            number_sequence=number_sequence,
            customer_id=customer_id,
            customer_name=customer_name,
            customer_email=customer_email,
            currency=currency,
            gst_percent=gst_percent or 0.0,
            discount_amount=discount_amount or 0.0,
            issued_date=issued_date,
            valid_until=valid_until,
            notes=notes,
            terms=terms,
            created_at=now,
            updated_at=now,
        )

        with atomic_change(quote):
            for data in items:
                quote.add_items(
                    QuoteItem(
                        description=data["description"],
                        quantity=data["quantity"],
                        unit_price=data["unit_price"],
                        total=data["total"],
                        position=data["position"],
                        product_id=data["product_id"],
                    )
                )
            quote.amount = sum(item.total for item in quote.ordered_items)
            quote.add_status_history(
                QuoteStatusChange(
                    previous_status=None,
                    new_status=QuoteStatus.DRAFT.value,
                    changed_at=now,
                    changed_by=changed_by,
                    note="Quote created",
                )
            )

        quote.raise_(
            QuoteCreated(
                quote_id=str(quote.id),
                quote_number=quote_number,
                customer_id=str(customer_id),
                amount=quote.amount,
                currency=currency,
                valid_until=valid_until,
                created_at=now,
            )
        )
        return quote

    def _transition(self, target: QuoteStatus, changed_by: str | None, note: str | None, **changes) -> bool:
        """Move to ``target``, apply ``changes`` and append a history row.

        Returns False for a same-state no-op.
        """
        QUOTE_TRANSITIONS.validate_transition(self.status, target)
        previous = self.status
        if previous == target.value:
            return False

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = target.value
            for name, value in changes.items():
                setattr(self, name, value)
            self.add_status_history(
                QuoteStatusChange(
                    previous_status=previous,
                    new_status=target.value,
                    changed_at=now,
                    changed_by=changed_by,
                    note=note,
                )
            )
            self.revision = (self.revision or 0) + 1
            self.updated_at = now

        self.raise_(
            QuoteStatusChanged(
                quote_id=str(self.id),
                quote_number=self.quote_number,
                previous_status=previous,
                new_status=target.value,
                changed_by=changed_by,
                note=note,
                changed_at=now,
            )
        )
        return True

    def send(self, changed_by: str | None = None) -> bool:
        return self._transition(QuoteStatus.SENT, changed_by, "Quote sent")

    def accept(self, accepted_date: date, changed_by: str | None = None) -> bool:
        return self._transition(QuoteStatus.ACCEPTED, changed_by, "Quote accepted", accepted_date=accepted_date)

    def reject(self, reason: str, rejected_date: date, changed_by: str | None = None) -> bool:
        reason = _clean_reason(reason, required=True)
        return self._transition(
            QuoteStatus.REJECTED,
            changed_by,
            f"Rejected: {reason}",
            rejected_date=rejected_date,
            reject_reason=reason,
        )

    def put_on_hold(self, reason: str | None = None, changed_by: str | None = None) -> bool:
        reason = _clean_reason(reason)
        return self._transition(QuoteStatus.ON_HOLD, changed_by, f"On hold: {reason}" if reason else "Put on hold")

    def cancel(self, reason: str | None = None, changed_by: str | None = None) -> bool:
        reason = _clean_reason(reason)
        return self._transition(QuoteStatus.CANCELLED, changed_by, f"Cancelled: {reason}" if reason else "Cancelled")

    def expire(self, as_of: date, changed_by: str | None = None) -> bool:
        if self.status == QuoteStatus.EXPIRED.value:
            return False
        QUOTE_TRANSITIONS.validate_transition(self.status, QuoteStatus.EXPIRED)
        if not self.valid_until < as_of:
            raise ValidationError({"valid_until": [f"Quote is valid until {self.valid_until.isoformat()}"]})
        return self._transition(QuoteStatus.EXPIRED, changed_by, f"Expired as of {as_of.isoformat()}")

    def ensure_convertible(self) -> None:
        if self.status == QuoteStatus.CONVERTED.value:
            raise InvalidOperationError(
                f"Quote {self.quote_number} was already converted to invoice {self.converted_invoice_id}"
            )
        QUOTE_TRANSITIONS.validate_transition(self.status, QuoteStatus.CONVERTED)

    def mark_converted(self, invoice_id: str, changed_by: str | None = None) -> None:
        self.ensure_convertible()
        self._transition(
            QuoteStatus.CONVERTED,
            changed_by,
            "Converted to invoice",
            converted_invoice_id=invoice_id,
        )
        self.raise_(
            QuoteConverted(
                quote_id=str(self.id),
                quote_number=self.quote_number,
                invoice_id=str(invoice_id),
                converted_at=self.updated_at,
            )
        )

    def copyable_items(self) -> list[dict]:
        return [
            {
                "description": item.description,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "product_id": item.product_id,
            }
            for item in self.ordered_items
        ]
