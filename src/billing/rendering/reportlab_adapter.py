"""ReportLab renderer for invoices and receipts.

Draws a single A4 page: header with the document number, bill-to block,
the line item table and the totals. Long item lists continue on further
pages.
"""

from io import BytesIO

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from billing.document.artifact import DocumentKind
from billing.document.snapshot import DocumentSnapshot
from billing.rendering.port import DocumentRenderer

NAVY = HexColor("#1B2A4A")
SLATE = HexColor("#64748B")
RULE = HexColor("#E2E8F0")

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 18 * mm
ROW_HEIGHT = 7 * mm


def _money(value: float, currency: str) -> str:
    return f"{currency} {value:,.2f}"


class ReportLabRenderer(DocumentRenderer):
    def __init__(self, business_name: str = "Billing", font: str = "Helvetica") -> None:
        self.business_name = business_name
        self.font = font
        self.bold_font = f"{font}-Bold"

    def render(self, snapshot: DocumentSnapshot, kind: DocumentKind) -> bytes:
        buffer = BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4)
        title = "RECEIPT" if kind == DocumentKind.RECEIPT else "TAX INVOICE"
        pdf.setTitle(f"{title.title()} {snapshot.invoice_number}")

        y = self._draw_header(pdf, snapshot, title)
        y = self._draw_bill_to(pdf, snapshot, y)
        y = self._draw_items(pdf, snapshot, y)
        self._draw_totals(pdf, snapshot, kind, y)

        pdf.showPage()
        pdf.save()
        return buffer.getvalue()

    def _draw_header(self, pdf: canvas.Canvas, snapshot: DocumentSnapshot, title: str) -> float:
        y = PAGE_HEIGHT - MARGIN
        pdf.setFillColor(NAVY)
        pdf.setFont(self.bold_font, 20)
        pdf.drawString(MARGIN, y, title)
        pdf.setFont(self.font, 10)
        pdf.drawRightString(PAGE_WIDTH - MARGIN, y, self.business_name)

        y -= 10 * mm
        pdf.setFillColor(SLATE)
        pdf.drawString(MARGIN, y, f"Number: {snapshot.invoice_number}")
        pdf.drawString(MARGIN + 70 * mm, y, f"Issued: {snapshot.issued_date.isoformat()}")
        pdf.drawString(MARGIN + 120 * mm, y, f"Due: {snapshot.due_date.isoformat()}")
        return y - 10 * mm

    def _draw_bill_to(self, pdf: canvas.Canvas, snapshot: DocumentSnapshot, y: float) -> float:
        pdf.setFillColor(NAVY)
        pdf.setFont(self.bold_font, 10)
        pdf.drawString(MARGIN, y, "Bill to")
        pdf.setFont(self.font, 10)
        for line in filter(None, (snapshot.customer_name, snapshot.customer_email)):
            y -= 5 * mm
            pdf.drawString(MARGIN, y, line)
        return y - 10 * mm

    def _draw_table_header(self, pdf: canvas.Canvas, y: float) -> float:
        pdf.setFont(self.bold_font, 9)
        pdf.setFillColor(NAVY)
        pdf.drawString(MARGIN, y, "Description")
        pdf.drawRightString(PAGE_WIDTH - MARGIN - 70 * mm, y, "Qty")
        pdf.drawRightString(PAGE_WIDTH - MARGIN - 35 * mm, y, "Unit price")
        pdf.drawRightString(PAGE_WIDTH - MARGIN, y, "Total")
        pdf.setStrokeColor(RULE)
        pdf.line(MARGIN, y - 2 * mm, PAGE_WIDTH - MARGIN, y - 2 * mm)
        pdf.setFont(self.font, 9)
        return y - ROW_HEIGHT

    def _draw_items(self, pdf: canvas.Canvas, snapshot: DocumentSnapshot, y: float) -> float:
        y = self._draw_table_header(pdf, y)
        for line in snapshot.items:
            if y < MARGIN + 40 * mm:
                pdf.showPage()
                y = self._draw_table_header(pdf, PAGE_HEIGHT - MARGIN)
            pdf.drawString(MARGIN, y, line.description[:70])
            pdf.drawRightString(PAGE_WIDTH - MARGIN - 70 * mm, y, f"{line.quantity:g}")
            pdf.drawRightString(PAGE_WIDTH - MARGIN - 35 * mm, y, f"{line.unit_price:,.2f}")
            pdf.drawRightString(PAGE_WIDTH - MARGIN, y, f"{line.total:,.2f}")
            y -= ROW_HEIGHT
        return y - 5 * mm

    def _draw_totals(self, pdf: canvas.Canvas, snapshot: DocumentSnapshot, kind: DocumentKind, y: float) -> None:
        rows = [
            ("Subtotal", snapshot.amount),
            (f"GST ({snapshot.gst_percent:g}%)", snapshot.gst_amount),
            ("Discount", -snapshot.discount_amount),
            ("Total", snapshot.total_payable),
            ("Paid", snapshot.amount_paid),
            ("Balance due", snapshot.amount_due),
        ]
        pdf.setFont(self.font, 10)
        for label, value in rows:
            pdf.drawString(PAGE_WIDTH - MARGIN - 70 * mm, y, label)
            pdf.drawRightString(PAGE_WIDTH - MARGIN, y, _money(value, snapshot.currency))
            y -= 6 * mm

        if kind == DocumentKind.RECEIPT:
            y -= 4 * mm
            pdf.setFont(self.bold_font, 10)
            if snapshot.receipt_number:
                pdf.drawString(MARGIN, y, f"Receipt: {snapshot.receipt_number}")
                y -= 6 * mm
            pdf.setFont(self.font, 10)
            for payment in snapshot.payments:
                method = payment.payment_method or "unspecified"
                pdf.drawString(
                    MARGIN,
                    y,
                    f"{payment.paid_date.isoformat()}  {method}  {_money(payment.amount, snapshot.currency)}",
                )
                y -= 5 * mm
            if snapshot.paid_date:
                pdf.drawString(MARGIN, y, f"Paid in full on {snapshot.paid_date.isoformat()}")

        if snapshot.notes:
            pdf.setFillColor(SLATE)
            pdf.setFont(self.font, 9)
            pdf.drawString(MARGIN, MARGIN, snapshot.notes[:120])
