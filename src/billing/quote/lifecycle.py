"""Quote status transitions: commands and handler.

Same-state requests are no-ops and write nothing.
"""

import structlog
from protean import handle
from protean.fields import Date, Identifier, Integer, String
from protean.utils.globals import current_domain

from billing.domain import billing
from billing.quote.quote import Quote

logger = structlog.get_logger(__name__)


@billing.command(part_of="Quote")
class SendQuote:
    quote_id = Identifier(required=True)
    changed_by = String(max_length=255)
    expected_revision = Integer()


@billing.command(part_of="Quote")
class AcceptQuote:
    quote_id = Identifier(required=True)
    accepted_date = Date(required=True)
    changed_by = String(max_length=255)
    expected_revision = Integer()


@billing.command(part_of="Quote")
class RejectQuote:
    quote_id = Identifier(required=True)
    rejected_date = Date(required=True)
    reason = String()
    changed_by = String(max_length=255)
    expected_revision = Integer()


@billing.command(part_of="Quote")
class HoldQuote:
    quote_id = Identifier(required=True)
    reason = String()
    changed_by = String(max_length=255)
    expected_revision = Integer()


@billing.command(part_of="Quote")
class CancelQuote:
    quote_id = Identifier(required=True)
    reason = String()
    changed_by = String(max_length=255)
    expected_revision = Integer()


@billing.command(part_of="Quote")
class ExpireQuote:
    quote_id = Identifier(required=True)
    as_of = Date(required=True)
    expected_revision = Integer()


@billing.command_handler(part_of=Quote)
class QuoteLifecycleHandler:
    def _apply(self, command, transition) -> None:
        repo = current_domain.repository_for(Quote)
        quote = repo.get_for_update(command.quote_id, command.expected_revision)
        previous = quote.status
        if transition(quote):
            repo.add(quote)
            logger.info(
                "quote_status_changed",
                quote_id=str(quote.id),
                quote_number=quote.quote_number,
                previous_status=previous,
                new_status=quote.status,
            )

    @handle(SendQuote)
    def send(self, command):
        self._apply(command, lambda quote: quote.send(changed_by=command.changed_by))

    @handle(AcceptQuote)
    def accept(self, command):
        self._apply(command, lambda quote: quote.accept(command.accepted_date, changed_by=command.changed_by))

    @handle(RejectQuote)
    def reject(self, command):
        self._apply(
            command,
            lambda quote: quote.reject(command.reason, command.rejected_date, changed_by=command.changed_by),
        )

    @handle(HoldQuote)
    def put_on_hold(self, command):
        self._apply(command, lambda quote: quote.put_on_hold(command.reason, changed_by=command.changed_by))

    @handle(CancelQuote)
    def cancel(self, command):
        self._apply(command, lambda quote: quote.cancel(command.reason, changed_by=command.changed_by))

    @handle(ExpireQuote)
    def expire(self, command):
        self._apply(command, lambda quote: quote.expire(command.as_of))
