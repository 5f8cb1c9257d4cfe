import os

os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import codepool_api.models  # noqa: F401
from codepool_api.app import create_app
from codepool_api.core.settings import settings
from codepool_api.db.base import Base
from codepool_api.db.session import build_engine, build_session_factory, get_session, get_session_factory
from codepool_api.models.code import CodeCategory, RedemptionCode
from codepool_api.observability.redemptions import get_redemption_store


REDEEM_KEY = "test-redeem-key"
ADMIN_KEY = "test-admin-key"


@pytest.fixture(autouse=True)
def configured_settings(monkeypatch):
    monkeypatch.setattr(settings, "redeem_secret_key", REDEEM_KEY)
    monkeypatch.setattr(settings, "admin_secret_key", ADMIN_KEY)
    monkeypatch.setattr(settings, "redeem_conflict_on_replay", True)
    monkeypatch.setattr(settings, "redeem_lock_backend", "auto")
    get_redemption_store().reset()
    yield settings
    get_redemption_store().reset()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    # File-backed so concurrent transactions get their own connections.
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'codepool.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = build_session_factory(engine)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def app_with_db(session_factory):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app_with_db):
    app, _ = app_with_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def seed_codes(session_factory):
    async def _seed(category: CodeCategory, values: list[str]) -> list[int]:
        async with session_factory() as session:
            records = [RedemptionCode(category=category, code=value) for value in values]
            session.add_all(records)
            await session.commit()
            return [record.id for record in records]

    return _seed
