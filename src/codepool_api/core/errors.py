"""Error taxonomy surfaced by the redemption API."""

from __future__ import annotations

from enum import Enum
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException


class UnavailableCause(str, Enum):
    """Why the store could not complete an operation."""

    TIMEOUT = "timeout"
    CONNECTIVITY = "connectivity"
    CONTENTION = "contention"


class CodepoolError(Exception):
    """Base class for errors rendered as ``{"error": <code>}`` responses."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "INTERNAL_ERROR"

    def __init__(self, message: str | None = None, *, error: str | None = None, **extra: Any) -> None:
        super().__init__(message or error or self.error)
        if error is not None:
            self.error = error
        self.extra = extra

    def payload(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error}
        body.update(self.extra)
        return body


class InvalidRequestError(CodepoolError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "INVALID_BODY"


class UnauthorizedError(CodepoolError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "UNAUTHORIZED"


class NotFoundError(CodepoolError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "NOT_FOUND"


class AlreadyRedeemedError(CodepoolError):
    """Idempotent replay: the player already holds a code for the category."""

    status_code = status.HTTP_409_CONFLICT
    error = "ALREADY_REDEEMED"


class OutOfStockError(CodepoolError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "OUT_OF_STOCK"


class StoreUnavailableError(CodepoolError):
    """Timeout or connectivity loss; safe to retry, nothing was written."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error = "DB_UNAVAILABLE"

    def __init__(self, cause: UnavailableCause, message: str | None = None) -> None:
        super().__init__(message or f"store unavailable ({cause.value})")
        self.cause = cause
        if cause is UnavailableCause.TIMEOUT:
            self.status_code = status.HTTP_504_GATEWAY_TIMEOUT
            self.error = "DB_TIMEOUT"


class StoreFailureError(CodepoolError):
    """Unclassified persistence failure."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "INTERNAL_ERROR"


REDEEM_BODY_SHAPE = {
    "category": "gopay_cashback | gopay_coins",
    "playerUserId": "number (required)",
    "jobId": "string?",
}


def register_exception_handlers(app: FastAPI) -> None:
    """Render the error taxonomy as JSON bodies."""

    @app.exception_handler(CodepoolError)
    async def _handle_codepool_error(request: Request, exc: CodepoolError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning(
                "Request failed",
                path=request.url.path,
                error=exc.error,
                detail=str(exc),
            )
        return JSONResponse(status_code=exc.status_code, content=exc.payload())

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        invalid_json = any(item.get("type") == "json_invalid" for item in exc.errors())
        body = {"error": "INVALID_JSON" if invalid_json else "INVALID_BODY"}
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Unknown routes and wrong methods; 405 keeps its Allow header.
        try:
            error = HTTPStatus(exc.status_code).name
        except ValueError:
            error = "HTTP_ERROR"
        return JSONResponse(status_code=exc.status_code, content={"error": error}, headers=exc.headers)


__all__ = [
    "AlreadyRedeemedError",
    "CodepoolError",
    "InvalidRequestError",
    "NotFoundError",
    "OutOfStockError",
    "REDEEM_BODY_SHAPE",
    "StoreFailureError",
    "StoreUnavailableError",
    "UnauthorizedError",
    "UnavailableCause",
    "register_exception_handlers",
]
