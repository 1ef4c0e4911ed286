from __future__ import annotations

import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class InsufficientBalance(AppError):
    """Requested days exceed what the member's unexpired grants can cover."""

    def __init__(self, requested: float, available: float) -> None:
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient annual leave: requested {requested:g} days, "
            f"available {available:g} days, short by {self.shortfall:g} days",
            status_code=status.HTTP_409_CONFLICT,
        )


class PolicyNotFound(AppError):
    """No policy matched; usually raised when no policy is active."""

    def __init__(self, message: str = "No active annual leave policy is configured") -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class LedgerWriteFailure(AppError):
    """The ledger store rejected an append."""

    def __init__(self, message: str = "Failed to write leave transactions") -> None:
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


class DuplicateTransaction(LedgerWriteFailure):
    """An append collided with an existing idempotency key."""


class AmbiguousReversal(AppError):
    """Usage rows for a leave request could not be identified unambiguously."""

    def __init__(self, request_id: uuid.UUID, message: str) -> None:
        self.request_id = request_id
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class GrantNotFound(AppError):
    """Grant transaction does not exist."""

    def __init__(self, grant_id: uuid.UUID) -> None:
        self.grant_id = grant_id
        super().__init__(f"Grant {grant_id} not found", status_code=status.HTTP_404_NOT_FOUND)


class InvalidGrantOperation(AppError):
    """The grant cannot be cancelled in its current state."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
