"""
Maps domain errors to HTTP responses.

Services raise chessbook.core.errors exceptions; this is the only place that
knows which HTTP status each category gets. Response body:

    {"error": {"code": "INSUFFICIENT_SLOTS", "message": "..."}}
"""

from typing import Any, Callable, Coroutine

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.responses import Response

from chessbook.core.errors import (
    AuthenticityError,
    CapacityError,
    DomainError,
    ExternalServiceError,
    InvariantViolation,
    NotFoundError,
    PermissionDenied,
    StateConflictError,
    ValidationError,
)
from chessbook.core.logging import get_logger

logger = get_logger(__name__)

ExceptionHandler = Callable[[Request, Exception], Coroutine[Any, Any, Response]]

RETRY_AFTER_SECONDS = 5

# Most specific first
STATUS_BY_CATEGORY: list[tuple[type[DomainError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (CapacityError, status.HTTP_409_CONFLICT),
    (StateConflictError, status.HTTP_409_CONFLICT),
    (AuthenticityError, status.HTTP_400_BAD_REQUEST),
    (ExternalServiceError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvariantViolation, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(exc: DomainError) -> int:
    for category, status_code in STATUS_BY_CATEGORY:
        if isinstance(exc, category):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def error_body(exc: DomainError) -> dict:
    return {"error": {"code": exc.code.value, "message": exc.message}}


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, DomainError)
    status_code = status_for(exc)
    headers = None

    if isinstance(exc, InvariantViolation):
        logger.critical("invariant_violation", code=exc.code.value, error=exc.message, path=request.url.path)
    elif isinstance(exc, ExternalServiceError):
        logger.warning("external_service_error", code=exc.code.value, error=exc.message)
        if exc.retryable:
            headers = {"Retry-After": str(RETRY_AFTER_SECONDS)}
        else:
            status_code = status.HTTP_502_BAD_GATEWAY
    else:
        logger.info("request_rejected", code=exc.code.value, status_code=status_code)

    return JSONResponse(status_code=status_code, content=error_body(exc), headers=headers)


EXCEPTION_HANDLERS: dict[type[Exception], ExceptionHandler] = {
    DomainError: domain_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
