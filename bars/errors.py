import logging
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    CONFLICT = "CONFLICT"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL = "INTERNAL"


class BarsError(Exception):
    """Base for every failure a service reports to its caller.

    Callers branch on ``kind`` rather than on the concrete class.
    """
    kind: ErrorKind = ErrorKind.INTERNAL
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BarsError):
    kind = ErrorKind.VALIDATION
    default_message = "Invalid input"


class NotFound(BarsError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class ProductNotFound(NotFound):
    default_message = "product not found"


class OrderNotFound(NotFound):
    default_message = "order not found"


class TableNotFound(NotFound):
    default_message = "table not found"


class UserNotFound(NotFound):
    default_message = "user not found"


class TenantNotFound(NotFound):
    default_message = "tenant not found"


class InsufficientStock(BarsError):
    kind = ErrorKind.INSUFFICIENT_STOCK
    default_message = "Insufficient stock"

    def __init__(self, message: str | None = None, *, available: int | None = None, requested: int | None = None):
        super().__init__(message)
        self.available = available
        self.requested = requested


class ConflictError(BarsError):
    kind = ErrorKind.CONFLICT
    default_message = "Concurrent modification, retry"


class Unauthorized(BarsError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Not authenticated"


class Forbidden(BarsError):
    kind = ErrorKind.FORBIDDEN
    default_message = "Forbidden"


class InternalError(BarsError):
    kind = ErrorKind.INTERNAL


def status_for(kind: ErrorKind) -> int:
    match kind:
        case ErrorKind.VALIDATION:
            return 400
        case ErrorKind.UNAUTHORIZED:
            return 401
        case ErrorKind.FORBIDDEN:
            return 403
        case ErrorKind.NOT_FOUND:
            return 404
        case ErrorKind.INSUFFICIENT_STOCK | ErrorKind.CONFLICT:
            return 409
        case _:
            return 500


def _body(kind: ErrorKind, message: str) -> dict:
    return {"error": kind.value, "message": message}


def install_error_handlers(app: FastAPI):

    @app.exception_handler(BarsError)
    async def bars_error_handler(request: Request, exc: BarsError):
        status_code = status_for(exc.kind)
        if exc.kind is ErrorKind.INTERNAL:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
            # internal detail stays in the log
            return JSONResponse(_body(exc.kind, InternalError.default_message), status_code=status_code)
        return JSONResponse(_body(exc.kind, exc.message), status_code=status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        msg = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg", "invalid request"))
        return JSONResponse(_body(ErrorKind.VALIDATION, msg), status_code=400)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(_body(ErrorKind.INTERNAL, InternalError.default_message), status_code=500)
