"""Typed errors raised by the billing context.

Business-rule violations are distinct types so callers can branch on the
kind of failure instead of matching message text. They extend Protean's
exception hierarchy, so handlers written against ``ValidationError`` or
``ObjectNotFoundError`` continue to catch them.
"""

from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.exceptions import InvalidOperationError as _ProteanInvalidOperationError

__all__ = [
    "BlobNotFoundError",
    "CollaboratorTimeoutError",
    "ConcurrentModificationError",
    "DocumentNumberCollisionError",
    "InvalidOperationError",
    "InvalidTransitionError",
    "NotFoundError",
    "NumberGenerationExhaustedError",
    "StatusChangeNotAllowedError",
    "TerminalStateError",
    "TransitionError",
    "ValidationError",
]


class TransitionError(ValidationError):
    """A status change that the transition table does not allow."""

    def __init__(self, current: str, target: str, message: str) -> None:
        self.current = current
        self.target = target
        super().__init__({"status": [message]})


class InvalidTransitionError(TransitionError):
    """The edge ``current -> target`` is not in the transition table."""


class TerminalStateError(TransitionError):
    """``current`` is terminal; the document is already finalized."""


class StatusChangeNotAllowedError(ValidationError):
    """A general update tried to change status instead of using a lifecycle operation."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            {
                "status": [
                    f"Status cannot be changed from {current} to {requested} by an update. "
                    "Use the dedicated lifecycle operation instead."
                ]
            }
        )


class DocumentNumberCollisionError(ValidationError):
    """The generated document number is already taken."""

    def __init__(self, document_number: str, field: str = "invoice_number") -> None:
        self.document_number = document_number
        self.field = field
        super().__init__({field: [f"Document number {document_number} is already in use"]})


class NotFoundError(ObjectNotFoundError):
    """The referenced document does not exist or has been soft-deleted."""

    def __init__(self, entity: str, identifier: str) -> None:
        self.entity = entity
        self.identifier = identifier
        message = f"{entity} with identifier {identifier} does not exist"
        self.messages = {"_entity": [message]}
        super().__init__(message)


class InvalidOperationError(_ProteanInvalidOperationError):
    """The operation is not permitted in the document's current state."""

    def __init__(self, message: str) -> None:
        self.messages = {"_entity": [message]}
        super().__init__(message)


class NumberGenerationExhaustedError(Exception):
    """No unique document number could be generated within the retry budget."""

    def __init__(self, prefix: str, attempts: int) -> None:
        self.prefix = prefix
        self.attempts = attempts
        super().__init__(f"Failed to generate a unique {prefix} number after {attempts} attempts")


class ConcurrentModificationError(ExpectedVersionError):
    """Another writer changed the document since it was read; retry from fresh data."""

    def __init__(
        self,
        identifier: str,
        expected: int | None,
        actual: int | None,
        entity: str = "Invoice",
    ) -> None:
        self.identifier = identifier
        self.expected = expected
        self.actual = actual
        message = f"{entity} {identifier} was modified concurrently (expected revision {expected}, found {actual})"
        self.messages = {"_entity": [message]}
        super().__init__(message)


class CollaboratorTimeoutError(TimeoutError):
    """An I/O collaborator exceeded its deadline. Safe to retry."""

    def __init__(self, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} did not complete within {timeout:g}s")


class BlobNotFoundError(KeyError):
    """No blob is stored under the requested key."""
