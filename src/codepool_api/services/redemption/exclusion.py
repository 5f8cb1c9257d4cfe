"""Transaction-scoped mutual exclusion keyed by ``(player, category)``.

A scope is acquired inside an open transaction and is released when that
transaction ends, whether it commits or rolls back. Callers never unlock
explicitly.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol

from loguru import logger
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from codepool_api.core.settings import settings
from codepool_api.models.code import CodeCategory


def exclusion_key(player_id: int, category: CodeCategory) -> str:
    return f"{player_id}:{category.value}"


class ExclusionScope(Protocol):
    async def acquire(self, session: AsyncSession, key: str) -> None:
        """Block until ``key`` is held for the remainder of the session's transaction."""


class AdvisoryLockScope:
    """PostgreSQL transaction-level advisory lock on a 64-bit hash of the key."""

    name = "advisory"

    async def acquire(self, session: AsyncSession, key: str) -> None:
        await session.execute(select(func.pg_advisory_xact_lock(func.hashtextextended(key, 0))))


@dataclass
class _KeyedLock:
    lock: asyncio.Lock
    holders: int = 0


class LocalLockScope:
    """In-process keyed locks; only correct when a single instance serves traffic."""

    name = "local"

    def __init__(self) -> None:
        self._locks: dict[str, _KeyedLock] = {}

    def __len__(self) -> int:
        return len(self._locks)

    async def acquire(self, session: AsyncSession, key: str) -> None:
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _KeyedLock(lock=asyncio.Lock())
        entry.holders += 1
        try:
            await entry.lock.acquire()
        except BaseException:
            self._forget(key, entry)
            raise

        released = False

        def _release_on_transaction_end(_session, transaction) -> None:  # noqa: ANN001
            nonlocal released
            if released or transaction.parent is not None:
                return
            released = True
            entry.lock.release()
            self._forget(key, entry)

        event.listen(session.sync_session, "after_transaction_end", _release_on_transaction_end)

    def _forget(self, key: str, entry: _KeyedLock) -> None:
        entry.holders -= 1
        if entry.holders <= 0 and self._locks.get(key) is entry:
            del self._locks[key]


_LOCAL_SCOPE = LocalLockScope()
_ADVISORY_SCOPE = AdvisoryLockScope()


def resolve_exclusion_scope(session: AsyncSession, backend: str | None = None) -> ExclusionScope:
    """Pick the scope for the session's dialect per ``redeem_lock_backend``."""

    backend = backend or settings.redeem_lock_backend
    if backend == "advisory":
        return _ADVISORY_SCOPE
    if backend == "local":
        return _LOCAL_SCOPE

    dialect = session.bind.dialect.name if session.bind is not None else ""
    if dialect == "postgresql":
        return _ADVISORY_SCOPE
    logger.debug("Using in-process exclusion scope", dialect=dialect)
    return _LOCAL_SCOPE


__all__ = [
    "AdvisoryLockScope",
    "ExclusionScope",
    "LocalLockScope",
    "exclusion_key",
    "resolve_exclusion_scope",
]
