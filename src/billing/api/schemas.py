"""Pydantic request/response schemas for the Billing API.

These are external contracts, kept separate from the internal Protean
commands and aggregates.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from billing.invoice.status import InvoiceStatus


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class LineItemSchema(BaseModel):
    id: str | None = None
    description: str
    quantity: float = Field(ge=0)
    unit_price: float = Field(ge=0)
    product_id: str | None = None


class LineItemResponse(BaseModel):
    id: str
    description: str
    quantity: float
    unit_price: float
    total: float
    product_id: str | None = None


class PaymentResponse(BaseModel):
    id: str
    amount: float
    payment_method: str | None = None
    paid_date: date
    notes: str | None = None


class StatusChangeResponse(BaseModel):
    previous_status: str | None = None
    new_status: str
    changed_at: datetime
    changed_by: str | None = None
    note: str | None = None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class CreateInvoiceRequest(BaseModel):
    customer_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    items: list[LineItemSchema]
    issued_date: date | None = None
    due_date: date | None = None
    gst_percent: float = Field(default=0.0, ge=0)
    discount_amount: float = Field(default=0.0, ge=0)
    currency: str | None = None
    status: str = "DRAFT"
    notes: str | None = None
    internal_notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "customer_name": "Ada Lovelace",
                    "customer_email": "ada@example.com",
                    "items": [
                        {"description": "Consulting", "quantity": 2, "unit_price": 50.0},
                        {"description": "Travel", "quantity": 1, "unit_price": 25.0},
                    ],
                    "gst_percent": 10,
                    "discount_amount": 5,
                }
            ]
        }
    }


class UpdateInvoiceRequest(BaseModel):
    items: list[LineItemSchema]
    status: str | None = None
    gst_percent: float | None = Field(default=None, ge=0)
    discount_amount: float | None = Field(default=None, ge=0)
    issued_date: date | None = None
    due_date: date | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    notes: str | None = None
    internal_notes: str | None = None
    expected_revision: int | None = None


class TransitionRequest(BaseModel):
    expected_revision: int | None = None


class MarkPaidRequest(TransitionRequest):
    paid_date: date
    payment_method: str | None = None


class MarkOverdueRequest(TransitionRequest):
    as_of: date | None = None


class CancelInvoiceRequest(TransitionRequest):
    cancelled_date: date
    reason: str


class RecordPaymentRequest(TransitionRequest):
    amount: float = Field(gt=0)
    payment_method: str | None = None
    paid_date: date
    notes: str | None = None
    idempotency_key: str | None = None


class BulkStatusRequest(BaseModel):
    invoice_ids: list[str] = Field(min_length=1)
    status: InvoiceStatus
    changed_by: str | None = None


class CreateQuoteRequest(BaseModel):
    customer_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    items: list[LineItemSchema]
    issued_date: date | None = None
    valid_until: date | None = None
    gst_percent: float = Field(default=0.0, ge=0)
    discount_amount: float = Field(default=0.0, ge=0)
    currency: str | None = None
    notes: str | None = None
    terms: str | None = None


class AcceptQuoteRequest(TransitionRequest):
    accepted_date: date | None = None


class RejectQuoteRequest(TransitionRequest):
    reason: str = Field(min_length=1, max_length=500)
    rejected_date: date | None = None


class QuoteReasonRequest(TransitionRequest):
    reason: str | None = Field(default=None, max_length=500)


class ConvertQuoteRequest(TransitionRequest):
    due_date: date | None = None
    gst_percent: float | None = Field(default=None, ge=0, le=100)
    discount_amount: float | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class CreatedInvoiceResponse(BaseModel):
    invoice_id: str
    invoice_number: str


class InvoiceResponse(BaseModel):
    invoice_id: str
    invoice_number: str
    customer_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    status: str
    currency: str
    amount: float
    gst_percent: float
    gst_amount: float
    discount_amount: float
    total_payable: float
    amount_paid: float
    amount_due: float
    issued_date: date
    due_date: date
    paid_date: date | None = None
    payment_method: str | None = None
    receipt_number: str | None = None
    cancelled_date: date | None = None
    cancel_reason: str | None = None
    reminders_sent: int
    notes: str | None = None
    revision: int
    items: list[LineItemResponse]
    payments: list[PaymentResponse]
    status_history: list[StatusChangeResponse]


class DeletedResponse(BaseModel):
    deleted: bool


class DocumentResponse(BaseModel):
    artifact_id: str
    blob_key: str
    signed_url: str
    content_hash: str
    file_name: str
    byte_size: int
    regenerated: bool


class StatisticsResponse(BaseModel):
    total: int
    per_status_counts: dict[str, int]
    total_revenue: float
    pending_revenue: float
    avg_paid_value: float


class BulkStatusResultResponse(BaseModel):
    invoice_id: str
    success: bool
    error: str | None = None


class BulkStatusResponse(BaseModel):
    results: list[BulkStatusResultResponse]


class CreatedQuoteResponse(BaseModel):
    quote_id: str
    quote_number: str


class QuoteResponse(BaseModel):
    quote_id: str
    quote_number: str
    customer_id: str
    customer_name: str | None = None
    status: str
    currency: str
    amount: float
    gst_percent: float
    discount_amount: float
    total_payable: float
    issued_date: date
    valid_until: date
    accepted_date: date | None = None
    rejected_date: date | None = None
    reject_reason: str | None = None
    converted_invoice_id: str | None = None
    notes: str | None = None
    terms: str | None = None
    revision: int
    items: list[LineItemResponse]
    status_history: list[StatusChangeResponse]


class ExpiredQuotesResponse(BaseModel):
    expired: int
