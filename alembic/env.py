"""Alembic environment for the TIL schema.

The application talks to the database through async drivers; migrations
run on the matching sync driver so they can be invoked from the app's
startup hook or from the command line alike.
"""

from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection

import tilapp.db.models  # noqa: F401  (registers every table on Base.metadata)
from tilapp.config.settings import get_settings
from tilapp.db.base import Base

config = context.config
# The app sets configure_logger=False so its structlog setup survives
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata

_SYNC_DRIVERS = {
    "+aiosqlite": "",
    # psycopg2 comes with the "postgres" extra
    "+asyncpg": "+psycopg2",
}


def get_url() -> str:
    """``-x db_url=...`` on the CLI wins over DATABASE_URL."""
    url = context.get_x_argument(as_dictionary=True).get("db_url")
    return url or str(get_settings().database_url)


def get_sync_url() -> str:
    url = get_url()
    for async_driver, sync_driver in _SYNC_DRIVERS.items():
        url = url.replace(async_driver, sync_driver)
    return url


def run_migrations_offline() -> None:
    context.configure(
        url=get_sync_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite cannot ALTER constraints in place
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(get_sync_url())
    try:
        with engine.connect() as connection:
            do_run_migrations(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
