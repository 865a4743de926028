"""Bring the registry schema to the latest revision and confirm its tables exist.

Deploys run this before the API or any repair task starts. With ``--check`` it
only reports whether the database is behind, which suits a readiness gate.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect

from channel_registry.config import get_settings
from channel_registry.logging_config import configure_logging

logger = logging.getLogger("channel_registry.migrations")

PROJECT_ROOT = Path(__file__).resolve().parent.parent
REGISTRY_TABLES = ("usernames", "pending_dj_profiles", "pending_dj_roles", "users")


@dataclass(frozen=True)
class SchemaState:
    current: Optional[str]
    head: Optional[str]
    missing_tables: tuple[str, ...] = field(default_factory=tuple)

    @property
    def at_head(self) -> bool:
        return self.current == self.head

    @property
    def ready(self) -> bool:
        return self.at_head and not self.missing_tables


def load_config(config_path: Optional[str] = None) -> Config:
    """Alembic config pointed at this project's scripts and the registry database."""
    config = Config(config_path or str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    database_url = get_settings().database_url
    if not database_url:
        raise RuntimeError("CHANNEL_DATABASE_URL must be set before migrating the registry.")
    config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return config


def read_schema_state(config: Config) -> SchemaState:
    head = ScriptDirectory.from_config(config).get_current_head()
    engine = create_engine(config.get_main_option("sqlalchemy.url"))
    try:
        with engine.connect() as connection:
            current = MigrationContext.configure(connection).get_current_revision()
            present = set(inspect(connection).get_table_names())
    finally:
        engine.dispose()
    missing = tuple(name for name in REGISTRY_TABLES if name not in present)
    return SchemaState(current=current, head=head, missing_tables=missing)


def migrate(config: Config, *, check_only: bool = False) -> SchemaState:
    """Upgrade to head when behind; return the state the database ends in."""
    state = read_schema_state(config)
    if state.ready:
        logger.info("Registry schema already at %s", state.head)
        return state
    if check_only:
        logger.warning(
            "Registry schema at %s, head is %s; missing tables: %s",
            state.current,
            state.head,
            ", ".join(state.missing_tables) or "none",
        )
        return state

    logger.info("Upgrading registry schema from %s to %s", state.current or "empty", state.head)
    command.upgrade(config, "head")
    state = read_schema_state(config)
    if state.missing_tables:
        raise RuntimeError(f"Registry tables missing after upgrade: {', '.join(state.missing_tables)}")
    return state


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Migrate the username registry schema to head.")
    parser.add_argument("--check", action="store_true", help="Report whether the schema is current without upgrading.")
    parser.add_argument("--config", default=None, help="Path to alembic.ini (default: project root).")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    configure_logging()
    args = parse_args(argv)
    try:
        state = migrate(load_config(args.config), check_only=args.check)
    except Exception:  # noqa: BLE001
        logger.exception("Registry migration failed")
        return 1
    return 0 if state.ready else 1


if __name__ == "__main__":
    sys.exit(main())
