"""FastAPI routes for the Billing domain: invoice and quote lifecycles and documents."""

from datetime import date

from fastapi import APIRouter, Depends, Request

from billing.api.schemas import (
    AcceptQuoteRequest,
    BulkStatusRequest,
    BulkStatusResponse,
    BulkStatusResultResponse,
    CancelInvoiceRequest,
    ConvertQuoteRequest,
    CreatedInvoiceResponse,
    CreateInvoiceRequest,
    CreatedQuoteResponse,
    CreateQuoteRequest,
    DeletedResponse,
    DocumentResponse,
    ExpiredQuotesResponse,
    InvoiceResponse,
    LineItemResponse,
    MarkOverdueRequest,
    MarkPaidRequest,
    PaymentResponse,
    QuoteReasonRequest,
    QuoteResponse,
    RecordPaymentRequest,
    RejectQuoteRequest,
    StatisticsResponse,
    StatusChangeResponse,
    TransitionRequest,
    UpdateInvoiceRequest,
)
from billing.document.artifact import DocumentKind
from billing.document.cache import DocumentCacheService
from billing.invoice.invoice import Invoice
from billing.invoice.service import InvoiceLifecycle
from billing.invoice.statistics import StatisticsAggregator
from billing.quote.quote import Quote
from billing.quote.service import QuoteLifecycle


# ---------------------------------------------------------------------------
# Dependencies: collaborators live on app.state, one set per application
# ---------------------------------------------------------------------------
def get_lifecycle(request: Request) -> InvoiceLifecycle:
    return request.app.state.lifecycle


def get_document_cache(request: Request) -> DocumentCacheService:
    return request.app.state.document_cache


def get_statistics(request: Request) -> StatisticsAggregator:
    return request.app.state.statistics


def get_quotes(request: Request) -> QuoteLifecycle:
    return request.app.state.quotes


def _invoice_response(invoice: Invoice) -> InvoiceResponse:
    return InvoiceResponse(
        invoice_id=str(invoice.id),
        invoice_number=invoice.invoice_number,
        customer_id=str(invoice.customer_id),
        customer_name=invoice.customer_name,
        customer_email=invoice.customer_email,
        status=invoice.status,
        currency=invoice.currency,
        amount=invoice.amount,
        gst_percent=invoice.gst_percent,
        gst_amount=invoice.gst_amount,
        discount_amount=invoice.discount_amount,
        total_payable=invoice.total_payable,
        amount_paid=invoice.amount_paid,
        amount_due=invoice.amount_due,
        issued_date=invoice.issued_date,
        due_date=invoice.due_date,
        paid_date=invoice.paid_date,
        payment_method=invoice.payment_method,
        receipt_number=invoice.receipt_number,
        cancelled_date=invoice.cancelled_date,
        cancel_reason=invoice.cancel_reason,
        reminders_sent=invoice.reminders_sent,
        notes=invoice.notes,
        revision=invoice.revision,
        items=[
            LineItemResponse(
                id=str(item.id),
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total=item.total,
                product_id=str(item.product_id) if item.product_id else None,
            )
            for item in invoice.ordered_items
        ],
        payments=[
            PaymentResponse(
                id=str(payment.id),
                amount=payment.amount,
                payment_method=payment.payment_method,
                paid_date=payment.paid_date,
                notes=payment.notes,
            )
            for payment in invoice.payments
        ],
        status_history=[
            StatusChangeResponse(
                previous_status=change.previous_status,
                new_status=change.new_status,
                changed_at=change.changed_at,
                changed_by=change.changed_by,
                note=change.note,
            )
            for change in sorted(invoice.status_history, key=lambda c: c.changed_at)
        ],
    )


# ---------------------------------------------------------------------------
# Invoice Router
# ---------------------------------------------------------------------------
invoice_router = APIRouter(prefix="/invoices", tags=["invoices"])


@invoice_router.post("", status_code=201, response_model=CreatedInvoiceResponse)
async def create_invoice(
    body: CreateInvoiceRequest,
    lifecycle: InvoiceLifecycle = Depends(get_lifecycle),
) -> CreatedInvoiceResponse:
    """Create a numbered invoice."""
    created = lifecycle.create(
        customer_id=body.customer_id,
        items=[item.model_dump(exclude={"id"}) for item in body.items],
        issued_date=body.issued_date,
        due_date=body.due_date,
        gst_percent=body.gst_percent,
        discount_amount=body.discount_amount,
        currency=body.currency,
        status=body.status,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        notes=body.notes,
        internal_notes=body.internal_notes,
    )
    return CreatedInvoiceResponse(invoice_id=created.id, invoice_number=created.invoice_number)


@invoice_router.get("/statistics", response_model=StatisticsResponse)
async def invoice_statistics(
    start_date: date | None = None,
    end_date: date | None = None,
    statistics: StatisticsAggregator = Depends(get_statistics),
) -> StatisticsResponse:
    """Status counts and revenue over invoices issued in the optional date range."""
    result = statistics.get_statistics(start_date=start_date, end_date=end_date)
    return StatisticsResponse(**result.to_dict())


@invoice_router.post("/bulk-status", response_model=BulkStatusResponse)
async def bulk_update_status(
    body: BulkStatusRequest,
    lifecycle: InvoiceLifecycle = Depends(get_lifecycle),
) -> BulkStatusResponse:
    """Move several invoices to one status, reporting the outcome per invoice."""
    results = lifecycle.bulk_update_status(body.invoice_ids, body.status, changed_by=body.changed_by)
    return BulkStatusResponse(
        results=[
            BulkStatusResultResponse(invoice_id=result.invoice_id, success=result.success, error=result.error)
            for result in results
        ]
    )


@invoice_router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: str, lifecycle: InvoiceLifecycle = Depends(get_lifecycle)) -> InvoiceResponse:
    return _invoice_response(lifecycle.get(invoice_id))


@invoice_router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: str,
    body: UpdateInvoiceRequest,
    lifecycle: InvoiceLifecycle = Depends(get_lifecycle),
) -> InvoiceResponse:
    """Replace line items and content fields. Status cannot be changed here."""
    invoice = lifecycle.update_with_items(
        invoice_id,
        items=[item.model_dump() for item in body.items],
        status=body.status,
        gst_percent=body.gst_percent,
        discount_amount=body.discount_amount,
        issued_date=body.issued_date,
        due_date=body.due_date,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        notes=body.notes,
        internal_notes=body.internal_notes,
        expected_revision=body.expected_revision,
    )
    return _invoice_response(invoice)


@invoice_router.post("/{invoice_id}/pending", response_model=InvoiceResponse)
async def mark_pending(
    invoice_id: str,
    body: TransitionRequest | None = None,
    lifecycle: InvoiceLifecycle = Depends(get_lifecycle),
) -> InvoiceResponse:
    body = body or TransitionRequest()
    return _invoice_response(lifecycle.mark_as_pending(invoice_id, expected_revision=body.expected_revision))


@invoice_router.post("/{invoice_id}/overdue", response_model=InvoiceResponse)
async def mark_overdue(
    invoice_id: str,
    body: MarkOverdueRequest,
    lifecycle: InvoiceLifecycle = Depends(get_lifecycle),
) -> InvoiceResponse:
    invoice = lifecycle.mark_as_overdue(invoice_id, as_of=body.as_of, expected_revision=body.expected_revision)
    return _invoice_response(invoice)


@invoice_router.post("/{invoice_id}/paid", response_model=InvoiceResponse)
async def mark_paid(
    invoice_id: str,
    body: MarkPaidRequest,
    lifecycle: InvoiceLifecycle = Depends(get_lifecycle),
) -> InvoiceResponse:
    invoice = lifecycle.mark_as_paid(
        invoice_id,
        paid_date=body.paid_date,
        payment_method=body.payment_method,
        expected_revision=body.expected_revision,
    )
    return _invoice_response(invoice)


@invoice_router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(
    invoice_id: str,
    body: CancelInvoiceRequest,
    lifecycle: InvoiceLifecycle = Depends(get_lifecycle),
) -> InvoiceResponse:
    invoice = lifecycle.cancel(
        invoice_id,
        cancelled_date=body.cancelled_date,
        reason=body.reason,
        expected_revision=body.expected_revision,
    )
    return _invoice_response(invoice)


@invoice_router.post("/{invoice_id}/payments", response_model=InvoiceResponse)
async def record_payment(
    invoice_id: str,
    body: RecordPaymentRequest,
    lifecycle: InvoiceLifecycle = Depends(get_lifecycle),
) -> InvoiceResponse:
    invoice = lifecycle.record_payment(
        invoice_id,
        amount=body.amount,
        method=body.payment_method,
        paid_date=body.paid_date,
        notes=body.notes,
        idempotency_key=body.idempotency_key,
        expected_revision=body.expected_revision,
    )
    return _invoice_response(invoice)


@invoice_router.post("/{invoice_id}/reminders", response_model=InvoiceResponse)
async def send_reminder(invoice_id: str, lifecycle: InvoiceLifecycle = Depends(get_lifecycle)) -> InvoiceResponse:
    return _invoice_response(lifecycle.send_reminder(invoice_id))


@invoice_router.post("/{invoice_id}/duplicate", status_code=201, response_model=CreatedInvoiceResponse)
async def duplicate_invoice(
    invoice_id: str,
    lifecycle: InvoiceLifecycle = Depends(get_lifecycle),
) -> CreatedInvoiceResponse:
    created = lifecycle.duplicate(invoice_id)
    return CreatedInvoiceResponse(invoice_id=created.id, invoice_number=created.invoice_number)


@invoice_router.delete("/{invoice_id}", response_model=DeletedResponse)
async def delete_invoice(invoice_id: str, lifecycle: InvoiceLifecycle = Depends(get_lifecycle)) -> DeletedResponse:
    """Soft-delete a DRAFT invoice. Other statuses must be cancelled instead."""
    return DeletedResponse(deleted=lifecycle.soft_delete(invoice_id))


@invoice_router.get("/{invoice_id}/documents/{kind}", response_model=DocumentResponse)
def get_document(
    invoice_id: str,
    kind: DocumentKind,
    ttl_seconds: int | None = None,
    lifecycle: InvoiceLifecycle = Depends(get_lifecycle),
    cache: DocumentCacheService = Depends(get_document_cache),
) -> DocumentResponse:
    """Return a signed URL for the current rendering, regenerating only when content changed."""
    reference = cache.get_or_create(lifecycle.get(invoice_id), kind, url_ttl_seconds=ttl_seconds)
    return DocumentResponse(
        artifact_id=reference.artifact_id,
        blob_key=reference.blob_key,
        signed_url=reference.signed_url,
        content_hash=reference.content_hash,
        file_name=reference.file_name,
        byte_size=reference.byte_size,
        regenerated=reference.regenerated,
    )


def _quote_response(quote: Quote) -> QuoteResponse:
    return QuoteResponse(
        quote_id=str(quote.id),
        quote_number=quote.quote_number,
        customer_id=str(quote.customer_id),
        customer_name=quote.customer_name,
        status=quote.status,
        currency=quote.currency,
        amount=quote.amount,
        gst_percent=quote.gst_percent,
        discount_amount=quote.discount_amount,
        total_payable=quote.total_payable,
        issued_date=quote.issued_date,
        valid_until=quote.valid_until,
        accepted_date=quote.accepted_date,
        rejected_date=quote.rejected_date,
        reject_reason=quote.reject_reason,
        converted_invoice_id=str(quote.converted_invoice_id) if quote.converted_invoice_id else None,
        notes=quote.notes,
        terms=quote.terms,
        revision=quote.revision,
        items=[
            LineItemResponse(
                id=str(item.id),
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total=item.total,
                product_id=str(item.product_id) if item.product_id else None,
            )
            for item in quote.ordered_items
        ],
        status_history=[
            StatusChangeResponse(
                previous_status=change.previous_status,
                new_status=change.new_status,
                changed_at=change.changed_at,
                changed_by=change.changed_by,
                note=change.note,
            )
            for change in sorted(quote.status_history, key=lambda c: c.changed_at)
        ],
    )


# ---------------------------------------------------------------------------
# Quote Router
# ---------------------------------------------------------------------------
quote_router = APIRouter(prefix="/quotes", tags=["quotes"])


@quote_router.post("", status_code=201, response_model=CreatedQuoteResponse)
async def create_quote(body: CreateQuoteRequest, quotes: QuoteLifecycle = Depends(get_quotes)) -> CreatedQuoteResponse:
    created = quotes.create(
        customer_id=body.customer_id,
        items=[item.model_dump(exclude={"id"}) for item in body.items],
        issued_date=body.issued_date,
        valid_until=body.valid_until,
        gst_percent=body.gst_percent,
        discount_amount=body.discount_amount,
        currency=body.currency,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        notes=body.notes,
        terms=body.terms,
    )
    return CreatedQuoteResponse(quote_id=created.id, quote_number=created.quote_number)


@quote_router.post("/expire", response_model=ExpiredQuotesResponse)
async def expire_quotes(as_of: date | None = None, quotes: QuoteLifecycle = Depends(get_quotes)) -> ExpiredQuotesResponse:
    """Expire open quotes whose validity has lapsed. Meant to be called on a schedule."""
    return ExpiredQuotesResponse(expired=quotes.expire_quotes(as_of=as_of))


@quote_router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(quote_id: str, quotes: QuoteLifecycle = Depends(get_quotes)) -> QuoteResponse:
    return _quote_response(quotes.get(quote_id))


@quote_router.post("/{quote_id}/send", response_model=QuoteResponse)
async def send_quote(
    quote_id: str,
    body: TransitionRequest | None = None,
    quotes: QuoteLifecycle = Depends(get_quotes),
) -> QuoteResponse:
    body = body or TransitionRequest()
    return _quote_response(quotes.send(quote_id, expected_revision=body.expected_revision))


@quote_router.post("/{quote_id}/accept", response_model=QuoteResponse)
async def accept_quote(
    quote_id: str,
    body: AcceptQuoteRequest | None = None,
    quotes: QuoteLifecycle = Depends(get_quotes),
) -> QuoteResponse:
    body = body or AcceptQuoteRequest()
    quote = quotes.accept(quote_id, accepted_date=body.accepted_date, expected_revision=body.expected_revision)
    return _quote_response(quote)


@quote_router.post("/{quote_id}/reject", response_model=QuoteResponse)
async def reject_quote(
    quote_id: str,
    body: RejectQuoteRequest,
    quotes: QuoteLifecycle = Depends(get_quotes),
) -> QuoteResponse:
    quote = quotes.reject(
        quote_id,
        reason=body.reason,
        rejected_date=body.rejected_date,
        expected_revision=body.expected_revision,
    )
    return _quote_response(quote)


@quote_router.post("/{quote_id}/hold", response_model=QuoteResponse)
async def hold_quote(
    quote_id: str,
    body: QuoteReasonRequest | None = None,
    quotes: QuoteLifecycle = Depends(get_quotes),
) -> QuoteResponse:
    body = body or QuoteReasonRequest()
    return _quote_response(quotes.put_on_hold(quote_id, reason=body.reason, expected_revision=body.expected_revision))


@quote_router.post("/{quote_id}/cancel", response_model=QuoteResponse)
async def cancel_quote(
    quote_id: str,
    body: QuoteReasonRequest | None = None,
    quotes: QuoteLifecycle = Depends(get_quotes),
) -> QuoteResponse:
    body = body or QuoteReasonRequest()
    return _quote_response(quotes.cancel(quote_id, reason=body.reason, expected_revision=body.expected_revision))


@quote_router.post("/{quote_id}/convert", status_code=201, response_model=CreatedInvoiceResponse)
async def convert_quote(
    quote_id: str,
    body: ConvertQuoteRequest | None = None,
    quotes: QuoteLifecycle = Depends(get_quotes),
) -> CreatedInvoiceResponse:
    """Turn an ACCEPTED quote into a PENDING invoice."""
    body = body or ConvertQuoteRequest()
    created = quotes.convert_to_invoice(
        quote_id,
        due_date=body.due_date,
        gst_percent=body.gst_percent,
        discount_amount=body.discount_amount,
        expected_revision=body.expected_revision,
    )
    return CreatedInvoiceResponse(invoice_id=created.id, invoice_number=created.invoice_number)
