"""Immutable rendering input built from an Invoice.

Everything a rendered invoice or receipt shows is captured here and
nothing else, so the renderer and the content hasher see exactly the same
data.
"""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class LineSnapshot:
    description: str
    quantity: float
    unit_price: float
    total: float


@dataclass(frozen=True)
class PaymentSnapshot:
    amount: float
    paid_date: date
    payment_method: str | None


@dataclass(frozen=True)
class DocumentSnapshot:
    invoice_id: str
    invoice_number: str
    customer_name: str | None
    customer_email: str | None
    currency: str
    issued_date: date
    due_date: date
    items: tuple[LineSnapshot, ...]
    amount: float
    gst_percent: float
    gst_amount: float
    discount_amount: float
    total_payable: float
    amount_paid: float
    amount_due: float
    notes: str | None = None
    paid_date: date | None = None
    payment_method: str | None = None
    receipt_number: str | None = None
    payments: tuple[PaymentSnapshot, ...] = ()

    @classmethod
    def from_invoice(cls, invoice) -> "DocumentSnapshot":
        return cls(
            invoice_id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            customer_name=invoice.customer_name,
            customer_email=invoice.customer_email,
            currency=invoice.currency,
            issued_date=invoice.issued_date,
            due_date=invoice.due_date,
            items=tuple(
                LineSnapshot(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total=item.total,
                )
                for item in invoice.ordered_items
            ),
            amount=invoice.amount or 0.0,
            gst_percent=invoice.gst_percent or 0.0,
            gst_amount=invoice.gst_amount,
            discount_amount=invoice.discount_amount or 0.0,
            total_payable=invoice.total_payable,
            amount_paid=invoice.amount_paid or 0.0,
            amount_due=invoice.amount_due or 0.0,
            notes=invoice.notes,
            paid_date=invoice.paid_date,
            payment_method=invoice.payment_method,
            receipt_number=invoice.receipt_number,
            payments=tuple(
                PaymentSnapshot(amount=p.amount, paid_date=p.paid_date, payment_method=p.payment_method)
                for p in sorted(invoice.payments, key=lambda p: (p.paid_date, p.amount, p.payment_method or ""))
            ),
        )
