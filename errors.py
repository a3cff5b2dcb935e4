"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. Every error carries an ErrorCode
(the machine-readable kind); services raise them and never inspect messages.
The handlers registered here are the only place kinds become HTTP responses.

Non-AppError exceptions become 500s (with Sentry reporting in production).
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class ErrorCode(str, Enum):
    # auth
    NO_TOKEN = "no_token"
    MALFORMED_TOKEN = "malformed_token"
    EXPIRED_TOKEN = "expired_token"
    WRONG_TOKEN_TYPE = "wrong_token_type"
    TOKEN_NOT_YET_VALID = "token_not_yet_valid"
    USER_NOT_FOUND = "user_not_found"
    ACCOUNT_LOCKED = "account_locked"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    FORBIDDEN = "forbidden"

    # registration
    VALIDATION_ERROR = "validation_error"
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    REGISTRATION_PENDING = "registration_pending"
    REGISTRATION_CAPACITY_EXCEEDED = "registration_capacity_exceeded"
    EMAIL_SEND_FAILED = "email_send_failed"

    # rate limiting
    EMAIL_RATE_LIMITED = "email_rate_limited"
    IP_RATE_LIMITED = "ip_rate_limited"

    # verification
    INVALID_TOKEN_FORMAT = "invalid_token_format"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    NO_PENDING_CHANGE = "no_pending_change"
    EMAIL_TAKEN = "email_taken"
    SAME_EMAIL_ADDRESS = "same_email_address"

    # account deletion
    NO_DELETION_SCHEDULED = "no_deletion_scheduled"

    NOT_FOUND = "not_found"
    INTERNAL_ERROR = "internal_error"


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: Optional[ErrorCode] = None,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.error_code = code
        self.field = field
        self.details = details

    @property
    def headers(self) -> Optional[dict[str, str]]:
        return None

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code.value}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = ErrorCode.VALIDATION_ERROR


class AuthenticationError(AppError):
    status_code = 401
    error_code = ErrorCode.INVALID_CREDENTIALS


class ForbiddenError(AppError):
    status_code = 403
    error_code = ErrorCode.FORBIDDEN


class NotFoundError(AppError):
    status_code = 404
    error_code = ErrorCode.NOT_FOUND


class ConflictError(AppError):
    status_code = 409
    error_code = ErrorCode.EMAIL_ALREADY_EXISTS


class DuplicateEmailError(ConflictError):
    """Raised by the repository when the unique email index rejects a write."""


class AccountLockedError(AppError):
    status_code = 423
    error_code = ErrorCode.ACCOUNT_LOCKED


class RateLimitError(AppError):
    status_code = 429
    error_code = ErrorCode.EMAIL_RATE_LIMITED

    def __init__(
        self,
        message: str,
        *,
        remaining_seconds: float,
        code: Optional[ErrorCode] = None,
    ) -> None:
        super().__init__(message, code=code)
        self.remaining_seconds = max(1, math.ceil(remaining_seconds))

    @property
    def headers(self) -> Optional[dict[str, str]]:
        return {"Retry-After": str(self.remaining_seconds)}

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["remaining_seconds"] = self.remaining_seconds
        return payload


class EmailDeliveryError(AppError):
    status_code = 502
    error_code = ErrorCode.EMAIL_SEND_FAILED


class ServiceUnavailableError(AppError):
    status_code = 503
    error_code = ErrorCode.REGISTRATION_CAPACITY_EXCEEDED


def register_error_handlers(app: FastAPI, *, debug: bool = False) -> None:
    """Register global exception handlers on the FastAPI app.

    ``debug`` exposes the text of unexpected exceptions in 500 bodies; it is
    only switched on in development.
    """

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={
                "error": "Validation failed",
                "code": ErrorCode.VALIDATION_ERROR.value,
                "details": details,
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        content: dict = {
            "error": "An internal server error occurred.",
            "code": ErrorCode.INTERNAL_ERROR.value,
        }
        if debug:
            content["details"] = f"{type(exc).__name__}: {exc}"
        return JSONResponse(status_code=500, content=content)
