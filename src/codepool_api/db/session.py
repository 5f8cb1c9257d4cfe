"""Async engine and session factories."""

from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from codepool_api.core.settings import settings


def _enable_sqlite_immediate_transactions(engine: AsyncEngine) -> None:
    """Open every SQLite transaction with ``BEGIN IMMEDIATE``.

    Deferred transactions that read and then write deadlock on lock upgrade
    when two connections race; taking the write lock up front serialises them.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):  # noqa: ANN001
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str | None = None, **kwargs) -> AsyncEngine:
    url = make_url(database_url or settings.database_url)
    options: dict = {"echo": settings.db_echo, "pool_pre_ping": True}
    if url.get_backend_name() != "sqlite":
        options["pool_timeout"] = settings.db_pool_timeout_seconds
    options.update(kwargs)

    engine = create_async_engine(url, **options)
    if url.get_backend_name() == "sqlite":
        _enable_sqlite_immediate_transactions(engine)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


engine = build_engine()
async_session = build_session_factory(engine)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Coordinators own their transactions, so they take the factory, not a session."""

    return async_session
