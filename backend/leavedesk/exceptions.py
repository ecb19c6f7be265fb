from __future__ import annotations

import enum
import logging
from collections.abc import Iterable

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorKind(enum.StrEnum):
    """Stable, closed set of failure kinds reported to API callers."""

    UNAUTHENTICATED = "Unauthenticated"
    INVALID_TOKEN = "InvalidToken"
    EXPIRED_TOKEN = "ExpiredToken"
    UNKNOWN_IDENTITY = "UnknownIdentity"
    ACCOUNT_DEACTIVATED = "AccountDeactivated"
    FORBIDDEN = "Forbidden"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    OVERLAPPING_REQUEST = "OverlappingRequest"
    INVALID_TRANSITION = "InvalidTransition"
    NOT_FOUND = "NotFound"
    VALIDATION_ERROR = "ValidationError"
    INTERNAL_ERROR = "InternalError"


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: ErrorKind
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class Unauthenticated(AppError):
    kind = ErrorKind.UNAUTHENTICATED
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidToken(AppError):
    kind = ErrorKind.INVALID_TOKEN
    status_code = status.HTTP_401_UNAUTHORIZED


class ExpiredToken(AppError):
    kind = ErrorKind.EXPIRED_TOKEN
    status_code = status.HTTP_401_UNAUTHORIZED


class UnknownIdentity(AppError):
    kind = ErrorKind.UNKNOWN_IDENTITY
    status_code = status.HTTP_401_UNAUTHORIZED


class AccountDeactivated(AppError):
    kind = ErrorKind.ACCOUNT_DEACTIVATED
    status_code = status.HTTP_403_FORBIDDEN


class Forbidden(AppError):
    """Raised by the role gate and by ownership/scope checks."""

    kind = ErrorKind.FORBIDDEN
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str, allowed_roles: Iterable[str] = ()) -> None:
        self.allowed_roles = tuple(sorted(allowed_roles))
        super().__init__(message)


class InsufficientBalance(AppError):
    kind = ErrorKind.INSUFFICIENT_BALANCE
    status_code = status.HTTP_400_BAD_REQUEST


class OverlappingRequest(AppError):
    kind = ErrorKind.OVERLAPPING_REQUEST
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(AppError):
    kind = ErrorKind.INVALID_TRANSITION
    status_code = status.HTTP_409_CONFLICT


class NotFound(AppError):
    kind = ErrorKind.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION_ERROR
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


# Authentication failures the optional-auth dependency swallows.
AUTHENTICATION_ERRORS: tuple[type[AppError], ...] = (
    Unauthenticated,
    InvalidToken,
    ExpiredToken,
    UnknownIdentity,
    AccountDeactivated,
)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.kind,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(mode="json"),
        headers=headers,
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=ErrorResponse(
            error=ErrorKind.VALIDATION_ERROR,
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        ).model_dump(mode="json"),
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error=ErrorKind.INTERNAL_ERROR,
            detail="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        ).model_dump(mode="json"),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)
