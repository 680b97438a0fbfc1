"""Shared test fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.store.gateway import TaskStoreGateway


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("src.config.settings.turso_database_url", "")


@pytest.fixture
async def gateway(tmp_path: Path, _no_turso: None) -> TaskStoreGateway:
    """A TaskStoreGateway backed by a temp database, schema created."""
    gw = TaskStoreGateway(db_path=tmp_path / "test.db")
    await gw.initialize()
    return gw


@pytest.fixture
def channel() -> MagicMock:
    return MagicMock(name="channel")


@pytest.fixture
def messenger(channel: MagicMock) -> MagicMock:
    """A Messenger fake: guilds A/B live, every send succeeds."""
    names = {"A": "Alpha", "B": "Bravo"}
    m = MagicMock()
    m.names = names
    m.current_guild_ids = MagicMock(side_effect=lambda: set(names))
    m.guild_name = MagicMock(side_effect=lambda gid: names.get(gid, ""))
    m.fetch_channel = AsyncMock(return_value=channel)
    m.send_text = AsyncMock()
    m.send_embed = AsyncMock()
    m.backfill = AsyncMock(return_value=0)
    return m
