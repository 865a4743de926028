"""Alembic environment for the username registry.

URL resolution: CHANNEL_DATABASE_URL > sqlalchemy.url in alembic.ini.
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from channel_registry.db import models  # noqa: F401
from channel_registry.db.base import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata

configured_url = config.get_main_option("sqlalchemy.url")
if configured_url == "%(CHANNEL_DATABASE_URL)s":
    configured_url = None
database_url = os.getenv("CHANNEL_DATABASE_URL") or configured_url

if not database_url:
    raise ValueError(
        "Database URL not configured. Set CHANNEL_DATABASE_URL or configure sqlalchemy.url in alembic.ini."
    )

config.set_main_option("sqlalchemy.url", database_url)


def run_migrations_offline() -> None:
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(database_url, poolclass=pool.NullPool, future=True)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
