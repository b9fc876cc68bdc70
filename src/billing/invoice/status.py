"""Status vocabularies and transition tables for financial documents.

Invoices:
    DRAFT → PENDING | CANCELLED
    PENDING → PAID | PARTIALLY_PAID | OVERDUE | CANCELLED
    PARTIALLY_PAID → PAID | OVERDUE | CANCELLED
    OVERDUE → PAID | PARTIALLY_PAID | PENDING | CANCELLED
    PAID, CANCELLED are terminal

Quotes:
    DRAFT → SENT | REJECTED | EXPIRED | CANCELLED
    SENT → ON_HOLD | ACCEPTED | REJECTED | EXPIRED | CANCELLED
    ON_HOLD → ACCEPTED | CANCELLED
    ACCEPTED → CONVERTED | CANCELLED
    REJECTED, EXPIRED → CANCELLED
    CANCELLED, CONVERTED are terminal

A same-state transition is always allowed. The tables are pure lookups with
no I/O.
"""

from enum import Enum

from billing.errors import InvalidTransitionError, TerminalStateError


class InvoiceStatus(Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    PAID = "PAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class QuoteStatus(Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    ON_HOLD = "ON_HOLD"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"
    CONVERTED = "CONVERTED"


class StatusTransitionTable:
    """Legal transitions between the members of one status enum."""

    def __init__(self, status_enum: type[Enum], transitions: dict[Enum, set[Enum]]) -> None:
        missing = set(status_enum) - set(transitions)
        if missing:
            raise ValueError(f"No transitions declared for {sorted(s.value for s in missing)}")
        self.status_enum = status_enum
        self._transitions = {status: frozenset(targets) for status, targets in transitions.items()}

    def _coerce(self, status: Enum | str) -> Enum:
        if isinstance(status, self.status_enum):
            return status
        return self.status_enum(status.value if isinstance(status, Enum) else status)

    def valid_next_states(self, current: Enum | str) -> frozenset:
        return self._transitions[self._coerce(current)]

    def terminal_states(self) -> frozenset:
        return frozenset(status for status, targets in self._transitions.items() if not targets)

    def is_terminal(self, status: Enum | str) -> bool:
        return not self._transitions[self._coerce(status)]

    def can_transition(self, current: Enum | str, target: Enum | str) -> bool:
        current, target = self._coerce(current), self._coerce(target)
        return current == target or target in self._transitions[current]

    def validate_transition(self, current: Enum | str, target: Enum | str) -> None:
        """Raise ``TerminalStateError`` or ``InvalidTransitionError`` for an illegal move."""
        current, target = self._coerce(current), self._coerce(target)
        if current == target:
            return

        allowed = self._transitions[current]
        if not allowed:
            raise TerminalStateError(
                current.value,
                target.value,
                f"Cannot change status from {current.value} as it is a terminal state",
            )
        if target not in allowed:
            valid = ", ".join(sorted(s.value for s in allowed))
            raise InvalidTransitionError(
                current.value,
                target.value,
                f"Invalid status transition from {current.value} to {target.value}. Valid transitions: {valid}",
            )


INVOICE_TRANSITIONS = StatusTransitionTable(
    InvoiceStatus,
    {
        InvoiceStatus.DRAFT: {InvoiceStatus.PENDING, InvoiceStatus.CANCELLED},
        InvoiceStatus.PENDING: {
            InvoiceStatus.PAID,
            InvoiceStatus.PARTIALLY_PAID,
            InvoiceStatus.OVERDUE,
            InvoiceStatus.CANCELLED,
        },
        InvoiceStatus.PARTIALLY_PAID: {InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED},
        InvoiceStatus.OVERDUE: {
            InvoiceStatus.PAID,
            InvoiceStatus.PARTIALLY_PAID,
            InvoiceStatus.PENDING,
            InvoiceStatus.CANCELLED,
        },
        InvoiceStatus.PAID: set(),  # Terminal
        InvoiceStatus.CANCELLED: set(),  # Terminal
    },
)

QUOTE_TRANSITIONS = StatusTransitionTable(
    QuoteStatus,
    {
        QuoteStatus.DRAFT: {QuoteStatus.SENT, QuoteStatus.REJECTED, QuoteStatus.EXPIRED, QuoteStatus.CANCELLED},
        QuoteStatus.SENT: {
            QuoteStatus.ON_HOLD,
            QuoteStatus.ACCEPTED,
            QuoteStatus.REJECTED,
            QuoteStatus.EXPIRED,
            QuoteStatus.CANCELLED,
        },
        QuoteStatus.ON_HOLD: {QuoteStatus.ACCEPTED, QuoteStatus.CANCELLED},
        QuoteStatus.ACCEPTED: {QuoteStatus.CONVERTED, QuoteStatus.CANCELLED},
        QuoteStatus.REJECTED: {QuoteStatus.CANCELLED},
        QuoteStatus.EXPIRED: {QuoteStatus.CANCELLED},
        QuoteStatus.CANCELLED: set(),  # Terminal
        QuoteStatus.CONVERTED: set(),  # Terminal
    },
)


def can_transition(current: InvoiceStatus | str, target: InvoiceStatus | str) -> bool:
    return INVOICE_TRANSITIONS.can_transition(current, target)


def validate_transition(current: InvoiceStatus | str, target: InvoiceStatus | str) -> None:
    INVOICE_TRANSITIONS.validate_transition(current, target)


def terminal_states() -> frozenset:
    return INVOICE_TRANSITIONS.terminal_states()


def valid_next_states(current: InvoiceStatus | str) -> frozenset:
    return INVOICE_TRANSITIONS.valid_next_states(current)
