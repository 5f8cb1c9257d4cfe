import asyncio

import pytest
from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)

from codepool_api.core.errors import StoreFailureError, StoreUnavailableError, UnavailableCause
from codepool_api.services.redemption import classify_store_failure, to_store_error, with_deadline


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (asyncio.TimeoutError(), UnavailableCause.TIMEOUT),
        (PoolTimeoutError("QueuePool limit of size 5 overflow 10 reached"), UnavailableCause.TIMEOUT),
        (OperationalError("SELECT 1", {}, Exception("database is locked")), UnavailableCause.TIMEOUT),
        (DisconnectionError("gone"), UnavailableCause.CONNECTIVITY),
        (InterfaceError("SELECT 1", {}, Exception("cannot perform operation")), UnavailableCause.CONNECTIVITY),
        (OperationalError("SELECT 1", {}, ConnectionRefusedError("refused")), UnavailableCause.CONNECTIVITY),
        (OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly")), UnavailableCause.CONNECTIVITY),
        (ConnectionResetError("reset"), UnavailableCause.CONNECTIVITY),
        (IntegrityError("INSERT", {}, Exception("duplicate key value")), None),
        (ValueError("not a store failure"), None),
    ],
)
def test_classify_store_failure(error, expected) -> None:
    assert classify_store_failure(error) is expected


def test_invalidated_connection_is_connectivity() -> None:
    error = OperationalError("SELECT 1", {}, Exception("ssl error"), connection_invalidated=True)
    assert classify_store_failure(error) is UnavailableCause.CONNECTIVITY


def test_to_store_error_maps_statuses() -> None:
    timeout = to_store_error(asyncio.TimeoutError(), operation="peek")
    assert isinstance(timeout, StoreUnavailableError)
    assert (timeout.status_code, timeout.error) == (504, "DB_TIMEOUT")

    offline = to_store_error(ConnectionRefusedError("refused"), operation="peek")
    assert (offline.status_code, offline.error) == (503, "DB_UNAVAILABLE")

    internal = to_store_error(IntegrityError("INSERT", {}, Exception("duplicate")), operation="peek")
    assert isinstance(internal, StoreFailureError)
    assert (internal.status_code, internal.error) == (500, "INTERNAL_ERROR")


@pytest.mark.asyncio
async def test_with_deadline_converts_timeout() -> None:
    with pytest.raises(StoreUnavailableError) as excinfo:
        await with_deadline(asyncio.sleep(5), seconds=0.05, operation="stats")

    assert excinfo.value.cause is UnavailableCause.TIMEOUT


@pytest.mark.asyncio
async def test_with_deadline_passes_results_through() -> None:
    async def _value() -> int:
        return 42

    assert await with_deadline(_value(), seconds=1, operation="stats") == 42
