from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import URL, make_url

from codepool_api.core.settings import settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Migrations run on blocking drivers; the service itself uses the async ones.
_SYNC_DRIVERS = {
    "postgresql+asyncpg": "postgresql",
    "sqlite+aiosqlite": "sqlite",
}


def sync_database_url() -> URL:
    url = make_url(settings.database_url)
    return url.set(drivername=_SYNC_DRIVERS.get(url.drivername, url.drivername))


def target_metadata():
    import codepool_api.models  # noqa: F401 (registers codes and code_redemptions)
    from codepool_api.db.base import Base

    return Base.metadata


def _configure(**kwargs) -> None:
    url = sync_database_url()
    context.configure(
        target_metadata=target_metadata(),
        compare_type=True,
        # SQLite cannot ALTER most constraints in place.
        render_as_batch=url.get_backend_name() == "sqlite",
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(url=sync_database_url().render_as_string(hide_password=False), literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(sync_database_url(), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
