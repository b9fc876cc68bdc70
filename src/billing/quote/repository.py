"""Repository for the Quote aggregate."""

from datetime import date

from protean.exceptions import ObjectNotFoundError

from billing.domain import billing
from billing.errors import ConcurrentModificationError, NotFoundError
from billing.invoice.status import QuoteStatus
from billing.quote.quote import Quote

_EXPIRABLE = [QuoteStatus.DRAFT.value, QuoteStatus.SENT.value]


@billing.repository(part_of=Quote)
class QuoteRepository:
    def get_live(self, quote_id: str) -> Quote:
        try:
            quote = self.get(quote_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError("Quote", str(quote_id)) from exc
        if quote.is_deleted:
            raise NotFoundError("Quote", str(quote_id))
        return quote

    def get_for_update(self, quote_id: str, expected_revision: int | None = None) -> Quote:
        quote = self.get_live(quote_id)
        if expected_revision is not None and quote.revision != expected_revision:
            raise ConcurrentModificationError(str(quote_id), expected_revision, quote.revision, entity="Quote")
        return quote

    def latest_sequence(self, prefix: str, year: int) -> int:
        results = (
            self._dao.query.filter(number_prefix=prefix, number_year=year)
            .order_by("-number_sequence")
            .limit(1)
            .all()
        )
        return results.items[0].number_sequence if results.items else 0

    def number_exists(self, quote_number: str) -> bool:
        return bool(self._dao.query.filter(quote_number=quote_number).all().items)

    def expirable(self, as_of: date) -> list[Quote]:
        """Live DRAFT or SENT quotes whose validity ended before ``as_of``."""
        quotes = self._dao.query.filter(status__in=_EXPIRABLE, valid_until__lt=as_of).limit(None).all().items
        return [quote for quote in quotes if not quote.is_deleted]
