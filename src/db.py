"""Async database access over libsql.

The ``libsql`` driver is synchronous, so every call is pushed onto a worker
thread with ``asyncio.to_thread()``.  Target selection follows settings:

- **Production**: ``TURSO_DATABASE_URL`` + ``TURSO_AUTH_TOKEN`` → remote Turso
- **Dev/test**: local SQLite file at ``database_path`` (or an explicit override)

Foreign keys are switched on for every connection so deleting a server row
cascades to its keyword and emoji rows.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Any

import libsql

from src.config import settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path


class AsyncCursor:
    """Result handle returned by :meth:`AsyncConnection.execute`."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    async def fetchone(self) -> tuple | None:
        return await asyncio.to_thread(self._cursor.fetchone)

    async def fetchall(self) -> list[tuple]:
        return await asyncio.to_thread(self._cursor.fetchall)

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount


class AsyncConnection:
    """A libsql connection whose blocking calls run off the event loop."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def execute(self, sql: str, params: tuple = ()) -> AsyncCursor:
        cursor = await asyncio.to_thread(self._conn.execute, sql, params)
        return AsyncCursor(cursor)

    async def commit(self) -> None:
        await asyncio.to_thread(self._conn.commit)

    async def rollback(self) -> None:
        await asyncio.to_thread(self._conn.rollback)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


def _open_local(path: str) -> Any:
    conn = libsql.connect(path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def _open_remote(url: str, auth_token: str) -> Any:
    conn = libsql.connect(database=url, auth_token=auth_token)
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


async def get_connection(local_path_override: Path | None = None) -> AsyncConnection:
    """Open a connection to the configured database.

    *local_path_override* (test isolation) wins over everything else; then a
    configured Turso URL; then the local ``database_path``.
    """
    if local_path_override is not None:
        path = local_path_override
    elif settings.turso_database_url:
        conn = await asyncio.to_thread(
            _open_remote, settings.turso_database_url, settings.turso_auth_token
        )
        return AsyncConnection(conn)
    else:
        path = settings.database_path

    path.parent.mkdir(parents=True, exist_ok=True)
    conn = await asyncio.to_thread(_open_local, str(path))
    return AsyncConnection(conn)


@contextlib.asynccontextmanager
async def connection(local_path_override: Path | None = None) -> AsyncIterator[AsyncConnection]:
    """Yield a connection that is rolled back on error and always closed."""
    db = await get_connection(local_path_override)
    try:
        yield db
    except Exception:
        await db.rollback()
        raise
    finally:
        await db.close()
