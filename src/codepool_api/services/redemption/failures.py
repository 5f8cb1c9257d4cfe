"""Classify persistence failures into retryable and internal buckets."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from loguru import logger
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)

from codepool_api.core.errors import StoreFailureError, StoreUnavailableError, UnavailableCause


T = TypeVar("T")

_TIMEOUT_MARKERS = ("timed out", "timeout", "database is locked")
_CONNECTIVITY_MARKERS = (
    "connection refused",
    "connection reset",
    "connection is closed",
    "connection was closed",
    "server closed the connection",
    "could not connect",
    "econnreset",
    "econnrefused",
    "broken pipe",
    "socket",
    "network",
)


def _message(exc: BaseException) -> str:
    orig = getattr(exc, "orig", None)
    return f"{exc} {orig or ''}".lower()


def classify_store_failure(exc: BaseException) -> UnavailableCause | None:
    """Return the transient cause for ``exc``, or ``None`` when it is internal."""

    if isinstance(exc, (asyncio.TimeoutError, PoolTimeoutError)):
        return UnavailableCause.TIMEOUT
    if isinstance(exc, (DisconnectionError, InterfaceError, ConnectionError)):
        return UnavailableCause.CONNECTIVITY
    if isinstance(exc, DBAPIError):
        if isinstance(exc.orig, asyncio.TimeoutError):
            return UnavailableCause.TIMEOUT
        if exc.connection_invalidated or isinstance(exc.orig, ConnectionError):
            return UnavailableCause.CONNECTIVITY
    if isinstance(exc, (SQLAlchemyError, OSError)):
        message = _message(exc)
        if any(marker in message for marker in _TIMEOUT_MARKERS):
            return UnavailableCause.TIMEOUT
        if any(marker in message for marker in _CONNECTIVITY_MARKERS):
            return UnavailableCause.CONNECTIVITY
        if isinstance(exc, OSError):
            return UnavailableCause.CONNECTIVITY
    return None


def to_store_error(exc: BaseException, *, operation: str) -> StoreUnavailableError | StoreFailureError:
    cause = classify_store_failure(exc)
    if cause is not None:
        logger.warning("Store unavailable", operation=operation, cause=cause.value, error=str(exc))
        return StoreUnavailableError(cause)
    logger.opt(exception=exc).error("Store operation failed", operation=operation)
    return StoreFailureError(f"{operation} failed")


async def with_deadline(awaitable: Awaitable[T], *, seconds: float, operation: str) -> T:
    """Await ``awaitable`` under a deadline, translating store failures."""

    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except (asyncio.TimeoutError, SQLAlchemyError, OSError) as exc:
        raise to_store_error(exc, operation=operation) from exc


__all__ = ["classify_store_failure", "to_store_error", "with_deadline"]
