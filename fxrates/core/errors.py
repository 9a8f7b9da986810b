"""Domain exceptions and the FastAPI handlers that map them to responses."""

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette import status
import logging

logger = logging.getLogger("fxrates.errors")


class FxServiceError(Exception):
    """Base class for errors raised by the rate store and conversion engine."""


class ProviderError(FxServiceError):
    """External provider unreachable, or its response could not be parsed."""


class StorageError(FxServiceError):
    """The rate store rejected a read or write."""


class RateNotFound(FxServiceError):
    """No persisted rate exists for a currency.

    ``side`` is ``"source"`` or ``"target"`` when raised from a conversion,
    ``None`` when raised from a bare pivot lookup.
    """

    def __init__(self, currency: str, side: str | None = None):
        self.currency = currency
        self.side = side
        if side:
            message = f"Rate not found for {side} currency: {currency}"
        else:
            message = f"Rate not found for currency: {currency}"
        super().__init__(message)


def http_error_handler(request: Request, exc):  # type: ignore
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        detail = f"No route for {request.method} {request.url.path}"
    else:
        detail = exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "not_found" if exc.status_code == 404 else "http_error",
            "detail": detail,
        },
    )


def rate_not_found_handler(request: Request, exc: RateNotFound):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": "rate_not_found",
            "currency": exc.currency,
            "side": exc.side,
            "detail": str(exc),
        },
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


def storage_error_handler(request: Request, exc: StorageError):  # type: ignore
    logger.error("storage failure: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "storage_error",
            "detail": "The rate store is unavailable.",
        },
    )


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "detail": "An unexpected error occurred.",
        },
    )
