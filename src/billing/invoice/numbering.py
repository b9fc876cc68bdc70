"""Sequential, year-scoped document numbers.

Numbers look like ``INV-2025-0042``. The generator reads the highest
sequence already issued for the prefix and year and adds one.

``claim`` holds a per-prefix lock from generation until the caller has
committed the document, so creators in this process never hand out the same
number twice. Writers in other processes are caught by the store's unique
constraint on the number; ``create_numbered`` treats that violation as a
collision and retries with a freshly generated number.
"""

import re
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.domain import Domain
from protean.exceptions import DatabaseError, TransactionError, ValidationError

from billing.errors import DocumentNumberCollisionError, NumberGenerationExhaustedError
from billing.invoice.invoice import Invoice

logger = structlog.get_logger(__name__)

_NUMBER_PATTERN = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<year>\d{4})-(?P<sequence>\d+)$")

# Exception class names drivers use for a violated unique constraint
_UNIQUE_VIOLATIONS = {"IntegrityError", "UniqueViolation"}

_claim_locks: dict[tuple[str, str], threading.RLock] = {}
_claim_locks_guard = threading.Lock()


def _claim_lock(domain_name: str, prefix: str) -> threading.RLock:
    with _claim_locks_guard:
        return _claim_locks.setdefault((domain_name, prefix), threading.RLock())


@dataclass(frozen=True)
class DocumentNumber:
    prefix: str
    year: int
    sequence: int
    width: int = 4

    def __str__(self) -> str:
        return f"{self.prefix}-{self.year}-{self.sequence:0{self.width}d}"

    @classmethod
    def parse(cls, value: str) -> "DocumentNumber":
        match = _NUMBER_PATTERN.match(value or "")
        if match is None:
            raise ValueError(f"Not a document number: {value!r}")
        sequence = match.group("sequence")
        return cls(
            prefix=match.group("prefix"),
            year=int(match.group("year")),
            sequence=int(sequence),
            width=len(sequence),
        )


class NumberGenerator:
    """Generates the next number for a prefix in the current calendar year.

    ``document_cls`` is the aggregate whose repository answers
    ``latest_sequence(prefix, year)``; invoices by default.
    """

    def __init__(
        self,
        domain: Domain,
        width: int = 4,
        clock: Callable[[], datetime] | None = None,
        document_cls: type = Invoice,
    ) -> None:
        self.domain = domain
        self.width = width
        self.document_cls = document_cls
        self._clock = clock or (lambda: datetime.now(UTC))

    def generate(self, prefix: str) -> DocumentNumber:
        year = self._clock().year
        latest = self.domain.repository_for(self.document_cls).latest_sequence(prefix, year)
        return DocumentNumber(prefix=prefix, year=year, sequence=latest + 1, width=self.width)

    @contextmanager
    def claim(self, prefix: str) -> Iterator[DocumentNumber]:
        """Yield the next number while holding the prefix's claim.

        The claim is reentrant, so a creator that runs inside another
        creator's claim on the same thread does not deadlock.
        """
        with _claim_lock(self.domain.name, prefix):
            with self.domain.domain_context():
                number = self.generate(prefix)
            yield number


def is_number_collision(exc: Exception, field: str = "invoice_number") -> bool:
    """True when ``exc`` reports that the document number is already taken."""
    if isinstance(exc, DocumentNumberCollisionError):
        return exc.field == field
    if isinstance(exc, ValidationError):
        messages = exc.messages.get(field, []) if isinstance(exc.messages, dict) else []
        return any("already present" in str(message) for message in messages)
    if isinstance(exc, TransactionError):
        return (exc.extra_info or {}).get("original_exception") in _UNIQUE_VIOLATIONS
    if isinstance(exc, DatabaseError):
        return type(exc.original_exception).__name__ in _UNIQUE_VIOLATIONS
    return False


def create_numbered(
    numbers: NumberGenerator,
    prefix: str,
    attempts: int,
    submit: Callable[[str], str],
    field: str = "invoice_number",
) -> tuple[str, str]:
    """Run ``submit(number)`` under a claimed number, retrying on collisions.

    Returns ``(document_id, number)``. Raises ``NumberGenerationExhaustedError``
    once ``attempts`` numbers have collided; any other failure propagates.
    """
    for attempt in range(1, attempts + 1):
        with numbers.claim(prefix) as claimed:
            number = str(claimed)
            try:
                document_id = submit(number)
            except (ValidationError, TransactionError, DatabaseError) as exc:
                if not is_number_collision(exc, field):
                    raise
                logger.warning("document_number_collision", number=number, attempt=attempt)
                continue
        return document_id, number

    logger.error("document_number_exhausted", prefix=prefix, attempts=attempts)
    raise NumberGenerationExhaustedError(prefix, attempts)
