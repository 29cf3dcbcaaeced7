"""
Domain exceptions raised by the booking engine.

Each class carries the HTTP status it maps to; `register_exception_handlers`
wires them into the FastAPI app so services never build HTTP responses.
Business failures are terminal: nothing here is retried.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from gymbook.core.logging import get_logger

logger = get_logger(__name__)

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class BookingError(Exception):
    """Base class for errors surfaced verbatim to the caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthenticationError(BookingError):
    """Credential missing, malformed, or expired."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(BookingError):
    status_code = status.HTTP_403_FORBIDDEN


class PaymentRequiredError(BookingError):
    """Credits would cover the booking but the caller has not opted in."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED


class ConflictError(BookingError):
    status_code = status.HTTP_409_CONFLICT


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND


class UnprocessableInputError(BookingError):
    status_code = HTTP_422_UNPROCESSABLE


class InternalError(BookingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def _booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers,
    )


async def _database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("database_error", error=str(exc), error_type=type(exc).__name__)
    error = InternalError("database error, please try again later")
    return JSONResponse(status_code=error.status_code, content={"detail": error.message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, _booking_error_handler)
    app.add_exception_handler(SQLAlchemyError, _database_error_handler)
