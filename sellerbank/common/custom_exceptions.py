from typing import Any, Dict, Optional
from fastapi import FastAPI, HTTPException, Request,status
from fastapi.exceptions import RequestValidationError
from sellerbank.common.logging_setup import get_logger
from sellerbank.common.utils import build_error, json_error
from sellerbank.common.constants import request_id_ctx

logger = get_logger("sellerbank.errors")


class LedgerError(Exception):
    """Business rule violation surfaced to the client as a JSON error body."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "LEDGER_ERROR"

    def __init__(self, message: str, *, status_code: Optional[int] = None,
                 code: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.extra = extra or {}
        self.headers: Optional[Dict[str, str]] = None


class PayloadValidationError(LedgerError):
    code = "INVALID_PAYLOAD"

    def __init__(self, message: str = "Incomplete data", missing_fields=None, **kwargs):
        extra = kwargs.pop("extra", {}) or {}
        if missing_fields:
            extra["fields"] = list(missing_fields)
        super().__init__(message, extra=extra, **kwargs)


class NotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ForbiddenError(LedgerError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class InsufficientBalanceError(LedgerError):
    code = "INSUFFICIENT_BALANCE"

    def __init__(self, message: str = "Insufficient balance", **kwargs):
        super().__init__(message, **kwargs)


class AccountUnavailableError(LedgerError):
    code = "ACCOUNT_UNAVAILABLE"


class AccountLockedError(LedgerError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "ACCOUNT_LOCKED"


class LimitExceededError(LedgerError):
    code = "LIMIT_EXCEEDED"


class SuspiciousActivityError(LedgerError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "SUSPICIOUS_ACTIVITY"


class RateLimitedError(LedgerError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"

    def __init__(self, message: str = "Too many requests", retry_after: int = 0, **kwargs):
        extra = kwargs.pop("extra", {}) or {}
        extra["retry_after"] = retry_after
        super().__init__(message, extra=extra, **kwargs)
        self.headers = {"Retry-After": str(retry_after)}


class InvalidStateTransitionError(LedgerError):
    code = "INVALID_STATE"


class WithdrawalInProgressError(LedgerError):
    code = "WITHDRAWAL_IN_PROGRESS"

    def __init__(self, message: str = "You already have a withdrawal in progress", **kwargs):
        super().__init__(message, **kwargs)


class TransferFailedError(LedgerError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "TRANSFER_FAILED"


async def ledger_error_handler(request: Request, exc: LedgerError):
    rid = request_id_ctx.get(None)

    logger.info(
        "request.rejected",
        extra={
            "code": exc.code,
            "status_code": exc.status_code,
            "path": request.url.path,
        },
    )

    details = {"message": exc.message, **exc.extra}
    payload = build_error(code=exc.code, details=details, request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=exc.headers)


async def fallback_handler(request: Request, exc: Exception):

    rid = request_id_ctx.get(None)
    body = {"message": "Internal Server Error"}

    logger.error(
        "unexpected.exception",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc,
    )

    status_code = getattr(exc, "status_code", status.HTTP_500_INTERNAL_SERVER_ERROR)

    payload = build_error(code="SERVER_ERROR", details=body, request_id=rid)
    return json_error(payload, status_code=status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = request_id_ctx.get(None)
    logger.warning(
        "request.validation_failed",
        extra={
            "errors": exc.errors(),
            "path": request.url.path,
        },
    )

    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    payload = build_error(code="UNPROCESSABLE_ENTITY", details={"message":"invalid request", "fields": fields}, request_id=rid)
    return json_error(payload, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


async def http_exception_handler(request: Request, exc: HTTPException):

    rid = request_id_ctx.get(None)

    error_code = f"HTTP_{exc.status_code}"
    payload = build_error(code=error_code, details={"message":exc.detail}, request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


def register_all_exceptions(app: FastAPI):

    app.add_exception_handler(
        Exception, # catch all unidentified/unhandled exceptions
        fallback_handler
    )

    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler
    )

    app.add_exception_handler(
        HTTPException,
        http_exception_handler
    )

    app.add_exception_handler(
        LedgerError,
        ledger_error_handler
    )
