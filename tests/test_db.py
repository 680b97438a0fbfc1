"""Tests for the async libsql connection layer."""

from pathlib import Path

import pytest

from src.db import AsyncConnection, connection, get_connection


@pytest.fixture(autouse=True)
def _local_only(_no_turso: None) -> None:
    pass


async def _rules_schema(db: AsyncConnection) -> None:
    await db.execute("CREATE TABLE servers (server_id TEXT PRIMARY KEY)")
    await db.execute(
        "CREATE TABLE keywords (text TEXT,"
        " server_id TEXT REFERENCES servers(server_id) ON DELETE CASCADE)"
    )
    await db.commit()


class TestGetConnection:
    async def test_override_path_creates_parent_dirs(self, tmp_path: Path):
        path = tmp_path / "nested" / "dir" / "bot.db"
        conn = await get_connection(local_path_override=path)
        try:
            assert isinstance(conn, AsyncConnection)
            assert path.parent.is_dir()
        finally:
            await conn.close()

    async def test_falls_back_to_configured_path(self, tmp_path: Path, monkeypatch):
        monkeypatch.setattr("src.config.settings.database_path", tmp_path / "data" / "bot.db")
        conn = await get_connection()
        await conn.close()
        assert (tmp_path / "data").is_dir()

    async def test_wal_mode(self, tmp_path: Path):
        conn = await get_connection(local_path_override=tmp_path / "bot.db")
        cursor = await conn.execute("PRAGMA journal_mode")
        assert (await cursor.fetchone())[0].lower() == "wal"
        await conn.close()

    async def test_foreign_keys_enabled(self, tmp_path: Path):
        conn = await get_connection(local_path_override=tmp_path / "bot.db")
        cursor = await conn.execute("PRAGMA foreign_keys")
        assert await cursor.fetchone() == (1,)
        await conn.close()

    async def test_deleting_parent_cascades(self, tmp_path: Path):
        conn = await get_connection(local_path_override=tmp_path / "bot.db")
        await _rules_schema(conn)
        await conn.execute("INSERT INTO servers VALUES ('1')")
        await conn.execute("INSERT INTO keywords VALUES ('!ticket', '1')")
        await conn.commit()

        await conn.execute("DELETE FROM servers WHERE server_id = '1'")
        await conn.commit()

        cursor = await conn.execute("SELECT COUNT(*) FROM keywords")
        assert await cursor.fetchone() == (0,)
        await conn.close()

    async def test_rowcount_reports_touched_rows(self, tmp_path: Path):
        conn = await get_connection(local_path_override=tmp_path / "bot.db")
        await _rules_schema(conn)
        await conn.execute("INSERT INTO servers VALUES ('1')")
        await conn.execute("INSERT INTO servers VALUES ('2')")
        cursor = await conn.execute("DELETE FROM servers")
        assert cursor.rowcount == 2
        await conn.close()


class TestConnectionContext:
    async def test_committed_writes_persist(self, tmp_path: Path):
        path = tmp_path / "bot.db"
        async with connection(path) as db:
            await _rules_schema(db)
            await db.execute("INSERT INTO servers VALUES (?)", ("kept",))
            await db.commit()

        async with connection(path) as db:
            cursor = await db.execute("SELECT server_id FROM servers")
            assert await cursor.fetchall() == [("kept",)]

    async def test_error_rolls_back_and_propagates(self, tmp_path: Path):
        path = tmp_path / "bot.db"
        async with connection(path) as db:
            await _rules_schema(db)

        with pytest.raises(RuntimeError, match="boom"):
            async with connection(path) as db:
                await db.execute("INSERT INTO servers VALUES (?)", ("lost",))
                raise RuntimeError("boom")

        async with connection(path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM servers")
            assert await cursor.fetchone() == (0,)
