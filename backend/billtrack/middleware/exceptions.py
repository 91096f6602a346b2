"""Error taxonomy and FastAPI exception handlers.

Services raise a `BillTrackError` subclass tagged with an `ErrorKind`; the
handlers below turn those (and framework/database errors) into the
standard error envelope:

    {
        "error": {
            "code": "CONFLICT",
            "message": "Human-readable error message",
            "details": {...}  // Optional additional details
        }
    }
"""

import enum
import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self]

    @property
    def code(self) -> str:
        return _CODE_BY_KIND[self]


_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_CODE_BY_KIND = {
    ErrorKind.NOT_FOUND: "RESOURCE_NOT_FOUND",
    ErrorKind.CONFLICT: "CONFLICT",
    ErrorKind.VALIDATION: "VALIDATION_FAILED",
    ErrorKind.UNAUTHORIZED: "UNAUTHORIZED",
    ErrorKind.FORBIDDEN: "PERMISSION_DENIED",
    ErrorKind.INTERNAL: "INTERNAL_ERROR",
}


class BillTrackError(Exception):
    """Base exception for BillTrack application errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @property
    def error_code(self) -> str:
        return self.kind.code


class ResourceNotFoundError(BillTrackError):
    """Referenced id does not resolve to a live record."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class ConflictError(BillTrackError):
    """Uniqueness violation (invoice number, OR number, scoped names)."""

    kind = ErrorKind.CONFLICT


class ValidationFailure(BillTrackError):
    """Malformed input or a business-rule guard that rejects the request."""

    kind = ErrorKind.VALIDATION


class AuthenticationError(BillTrackError):
    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class PermissionDeniedError(BillTrackError):
    kind = ErrorKind.FORBIDDEN

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
    headers: dict | None = None,
) -> JSONResponse:
    """Create standardized error response."""
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=headers,
    )


async def billtrack_exception_handler(
    request: Request,
    exc: BillTrackError,
) -> JSONResponse:
    """Handle tagged BillTrack errors raised by services and auth deps."""
    logger.warning(
        f"BillTrack error: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    headers = None
    if exc.kind is ErrorKind.UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
        headers=headers,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(
        f"Validation error on {request.url.path}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def database_exception_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    """Handle integrity errors that slipped past the service-level checks."""
    logger.error(
        f"Database integrity error on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    error_msg = str(exc.orig) if hasattr(exc, "orig") else str(exc)

    if "unique" in error_msg.lower():
        return create_error_response(
            status_code=status.HTTP_409_CONFLICT,
            message="A record with this value already exists",
            error_code="DUPLICATE_RECORD",
        )
    if "foreign key" in error_msg.lower():
        message = "Referenced record does not exist"
        error_code = "FOREIGN_KEY_VIOLATION"
    elif "not null" in error_msg.lower():
        message = "Required field is missing"
        error_code = "NULL_VALUE_NOT_ALLOWED"
    else:
        message = "Database constraint violation"
        error_code = "INTEGRITY_ERROR"

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message=message,
        error_code=error_code,
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    """Handle database operational errors (connection issues, etc.)."""
    logger.error(
        f"Database operational error on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Please try again.",
        error_code="DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.error(
        f"Unhandled exception on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
        exc_info=True,
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(BillTrackError, billtrack_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, database_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
