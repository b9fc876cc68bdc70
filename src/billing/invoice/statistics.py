"""Status counts and revenue figures over live invoices.

Figures come from the flat ``InvoiceStatusSummary`` projection: one query,
filtered on ``issued_date`` by the store, returns every row in range, and
the rows are grouped by status in a single pass. The number of queries does
not grow with the number of invoices or statuses.
"""

from dataclasses import asdict, dataclass, field
from datetime import date

from protean.domain import Domain

from billing.invoice.status import InvoiceStatus
from billing.projections.invoice_status_summary import InvoiceStatusSummary

_PENDING_STATUSES = (InvoiceStatus.PENDING.value, InvoiceStatus.OVERDUE.value)


@dataclass(frozen=True)
class InvoiceStatistics:
    total: int
    per_status_counts: dict[str, int] = field(default_factory=dict)
    total_revenue: float = 0.0
    pending_revenue: float = 0.0
    avg_paid_value: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


class StatisticsAggregator:
    """Read-only aggregation over the invoice status summary."""

    def __init__(self, domain: Domain) -> None:
        self.domain = domain

    def _summaries(self, start_date: date | None, end_date: date | None) -> list[InvoiceStatusSummary]:
        filters = {}
        if start_date is not None:
            filters["issued_date__gte"] = start_date
        if end_date is not None:
            filters["issued_date__lte"] = end_date

        query = self.domain.repository_for(InvoiceStatusSummary)._dao.query
        if filters:
            query = query.filter(**filters)
        return query.limit(None).all().items

    def get_statistics(self, start_date: date | None = None, end_date: date | None = None) -> InvoiceStatistics:
        """Aggregate invoices issued within ``[start_date, end_date]`` (both optional, inclusive)."""
        counts = {status.value: 0 for status in InvoiceStatus}
        sums = {status.value: 0.0 for status in InvoiceStatus}

        with self.domain.domain_context():
            for summary in self._summaries(start_date, end_date):
                counts[summary.status] += 1
                sums[summary.status] += summary.amount or 0.0

        paid_count = counts[InvoiceStatus.PAID.value]
        total_revenue = round(sums[InvoiceStatus.PAID.value], 2)
        return InvoiceStatistics(
            total=sum(counts.values()),
            per_status_counts=counts,
            total_revenue=total_revenue,
            pending_revenue=round(sum(sums[status] for status in _PENDING_STATUSES), 2),
            avg_paid_value=round(total_revenue / paid_count, 2) if paid_count else 0.0,
        )
