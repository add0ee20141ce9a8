from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    retryable: bool = False

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
    def __init__(self, message: str = "Login required."):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, code="FORBIDDEN", status_code=status.HTTP_403_FORBIDDEN)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class ConflictError(AppError):
    def __init__(self, message: str = "Conflict", details: dict[str, Any] | None = None):
        super().__init__(message, code="CONFLICT", status_code=status.HTTP_409_CONFLICT, details=details)


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(message, code="BAD_REQUEST", status_code=status.HTTP_400_BAD_REQUEST, details=details)


# Scan rejections. Each kind carries exactly one user-facing message.


class InvalidScanFormatError(AppError):
    def __init__(self):
        super().__init__("Invalid QR format.", code="INVALID_FORMAT", status_code=status.HTTP_400_BAD_REQUEST)


class StationMismatchError(AppError):
    def __init__(self):
        super().__init__("Wrong station QR.", code="STATION_MISMATCH", status_code=status.HTTP_400_BAD_REQUEST)


class StationNotFoundError(AppError):
    def __init__(self):
        super().__init__("Station missing.", code="STATION_NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class StationInactiveError(AppError):
    def __init__(self):
        super().__init__("This station is not active.", code="STATION_INACTIVE", status_code=status.HTTP_409_CONFLICT)


class AlreadyScannedError(AppError):
    def __init__(self):
        super().__init__("Already scanned.", code="ALREADY_SCANNED", status_code=status.HTTP_409_CONFLICT)


class UserNotFoundError(AppError):
    def __init__(self):
        super().__init__("User missing.", code="USER_NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class TransientStoreError(AppError):
    """Store read/write/transaction failed for infrastructure reasons; safe to retry."""

    retryable = True

    def __init__(self, message: str = "Scan failed. Try again."):
        super().__init__(message, code="STORE_UNAVAILABLE", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    body = {
        "error": {
            "message": exc.message,
            "code": exc.code,
            "details": exc.details,
            "retryable": exc.retryable,
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
            "retryable": False,
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=body,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from checkin.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    body = {
        "error": {
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
            "details": {},
            "retryable": False,
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body,
    )
