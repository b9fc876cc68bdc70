"""Map billing errors onto HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.exceptions import InvalidOperationError as ProteanInvalidOperationError

from billing.errors import (
    CollaboratorTimeoutError,
    NumberGenerationExhaustedError,
    StatusChangeNotAllowedError,
    TransitionError,
)

_STATUS_CODES = [
    (ValidationError, 422),
    (TransitionError, 409),
    (StatusChangeNotAllowedError, 409),
    (ObjectNotFoundError, 404),
    (ProteanInvalidOperationError, 409),
    (ExpectedVersionError, 409),
    (NumberGenerationExhaustedError, 503),
    (CollaboratorTimeoutError, 504),
]


def _detail(exc: Exception):
    messages = getattr(exc, "messages", None)
    return messages if messages is not None else str(exc)


def register_error_handlers(app: FastAPI) -> None:
    for exc_class, status_code in _STATUS_CODES:

        async def handler(request: Request, exc: Exception, status_code: int = status_code) -> JSONResponse:
            return JSONResponse(
                status_code=status_code,
                content={"error": type(exc).__name__, "detail": _detail(exc)},
            )

        app.add_exception_handler(exc_class, handler)
