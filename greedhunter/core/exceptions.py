from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, code="FORBIDDEN", status_code=status.HTTP_403_FORBIDDEN)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found", code: str = "NOT_FOUND"):
        super().__init__(message, code=code, status_code=status.HTTP_404_NOT_FOUND)


class ConflictError(AppError):
    def __init__(self, message: str = "Conflict", code: str = "CONFLICT", details: dict[str, Any] | None = None):
        super().__init__(message, code=code, status_code=status.HTTP_409_CONFLICT, details=details)


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request", code: str = "BAD_REQUEST", details: dict[str, Any] | None = None):
        super().__init__(message, code=code, status_code=status.HTTP_400_BAD_REQUEST, details=details)


# Ledger errors: business-rule violations reported to the caller, never absorbed.


class UserNotFoundError(NotFoundError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message, code="USER_NOT_FOUND")


class WalletNotFoundError(NotFoundError):
    def __init__(self, message: str = "Wallet not found"):
        super().__init__(message, code="WALLET_NOT_FOUND")


class InvalidAmountError(BadRequestError):
    def __init__(self, amount: Any):
        super().__init__("Amount must be a positive integer", code="INVALID_AMOUNT", details={"amount": amount})


class InvalidTransactionTypeError(BadRequestError):
    def __init__(self, tx_type: str):
        super().__init__(f"Invalid transaction type: {tx_type}", code="INVALID_TRANSACTION_TYPE")


class InsufficientFundsError(BadRequestError):
    def __init__(self, balance: int, requested: int):
        super().__init__(
            "Insufficient balance",
            code="INSUFFICIENT_FUNDS",
            details={"balance": balance, "requested": requested},
        )


class SelfTransferError(BadRequestError):
    def __init__(self):
        super().__init__("Cannot transfer to yourself", code="SELF_TRANSFER")


class WalletFrozenError(ConflictError):
    def __init__(self, message: str = "Wallet is frozen"):
        super().__init__(message, code="WALLET_FROZEN")


class InvalidWalletStateError(ConflictError):
    def __init__(self, message: str):
        super().__init__(message, code="INVALID_WALLET_STATE")


class WalletBusyError(ConflictError):
    def __init__(self):
        super().__init__("Wallet was modified concurrently, retry the operation", code="WALLET_BUSY")


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    body = {
        "error": {
            "message": exc.message,
            "code": exc.code,
            "details": exc.details,
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(status_code=exc.status_code, content=body)


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    body = {
        "error": {
            "message": "Validation error",
            "code": "VALIDATION_ERROR",
            "details": {"errors": exc.errors()},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=body,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from greedhunter.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    body = {
        "error": {
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
            "details": {},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body,
    )
