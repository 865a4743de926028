from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from sqlalchemy.engine import Engine

from channel_registry.auth import set_identity_provider
from channel_registry.config import get_settings
from channel_registry.db.base import Base
from channel_registry.db.session import dispose_engine, get_engine
from channel_registry.telemetry import clear_listeners


@pytest.fixture
def db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Engine]:
    db_path = tmp_path / "registry.db"
    monkeypatch.setenv("CHANNEL_DATABASE_URL", f"sqlite:///{db_path}")
    get_settings.cache_clear()
    dispose_engine()
    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield engine
    dispose_engine()
    get_settings.cache_clear()
    clear_listeners()
    set_identity_provider(None)
