"""TaskStoreGateway: libsql CRUD for recurring tasks, known servers and rules."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.db import connection
from src.store.events import TaskChange, TaskChangeBus
from src.store.models import (
    Keyword,
    KnownServer,
    RecurringMessage,
    RecurringTask,
    WhitelistedEmoji,
)

if TYPE_CHECKING:
    from pathlib import Path

    from src.db import AsyncConnection

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS servers (
        server_id TEXT PRIMARY KEY,
        name      TEXT NOT NULL DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS keywords (
        id         INTEGER PRIMARY KEY AUTOINCREMENT,
        server_id  TEXT NOT NULL REFERENCES servers(server_id) ON DELETE CASCADE,
        channel_id TEXT NOT NULL,
        kind       TEXT NOT NULL DEFAULT 'startswith',
        text       TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS whitelisted_emojis (
        id        INTEGER PRIMARY KEY AUTOINCREMENT,
        server_id TEXT NOT NULL REFERENCES servers(server_id) ON DELETE CASCADE,
        emoji     TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS recurring_messages (
        id            TEXT PRIMARY KEY,
        channel_id    TEXT NOT NULL,
        text          TEXT NOT NULL,
        send_as_embed INTEGER NOT NULL DEFAULT 0,
        embed_color   INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS recurring_tasks (
        id          TEXT PRIMARY KEY,
        message_id  TEXT NOT NULL REFERENCES recurring_messages(id) ON DELETE CASCADE,
        day_of_week TEXT NOT NULL DEFAULT 'EVERY_DAY',
        hour        INTEGER NOT NULL,
        minute      INTEGER NOT NULL
    )
    """,
)


class TaskStoreGateway:
    """Persistence boundary for the scheduler and the guild reconciler.

    Singleton accessed via ``TaskStoreGateway.get()``.  Pass an explicit
    *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).

    Writes to recurring tasks publish a :class:`TaskChange` on :attr:`changes`
    once committed, so subscribers always read the post-write state.
    """

    _instance: TaskStoreGateway | None = None

    def __init__(self, db_path: Path | None = None, changes: TaskChangeBus | None = None) -> None:
        self._db_path = db_path
        self._initialised = False
        self.changes = changes or TaskChangeBus()

    @classmethod
    def get(cls) -> TaskStoreGateway:
        """Return the shared gateway instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Internal helpers ------------------------------------------------------

    async def _ensure_schema(self, db: AsyncConnection) -> None:
        if self._initialised:
            return
        for statement in _SCHEMA:
            await db.execute(statement)
        await db.commit()
        self._initialised = True

    async def initialize(self) -> None:
        """Create tables if needed. Safe to call more than once."""
        async with connection(self._db_path) as db:
            await self._ensure_schema(db)
        logger.info("Task store initialized")

    async def _fetchall(self, sql: str, params: tuple = ()) -> list[tuple]:
        async with connection(self._db_path) as db:
            await self._ensure_schema(db)
            cursor = await db.execute(sql, params)
            return await cursor.fetchall()

    async def _fetchone(self, sql: str, params: tuple = ()) -> tuple | None:
        async with connection(self._db_path) as db:
            await self._ensure_schema(db)
            cursor = await db.execute(sql, params)
            return await cursor.fetchone()

    async def _write(self, *statements: tuple[str, tuple]) -> int:
        """Run *statements* in one transaction. Returns rows touched by the last."""
        async with connection(self._db_path) as db:
            await self._ensure_schema(db)
            rowcount = 0
            for sql, params in statements:
                cursor = await db.execute(sql, params)
                rowcount = cursor.rowcount
            await db.commit()
            return rowcount

    # -- Recurring messages ----------------------------------------------------

    async def get_recurring_message(self, message_id: str) -> RecurringMessage | None:
        """Fetch a message definition by ID, or None if it no longer exists."""
        row = await self._fetchone(
            "SELECT id, channel_id, text, send_as_embed, embed_color"
            " FROM recurring_messages WHERE id = ?",
            (message_id,),
        )
        return RecurringMessage.from_row(row) if row else None

    async def add_recurring_message(self, message: RecurringMessage) -> RecurringMessage:
        await self._write(
            (
                "INSERT INTO recurring_messages"
                " (id, channel_id, text, send_as_embed, embed_color)"
                " VALUES (?, ?, ?, ?, ?)",
                message.to_row(),
            )
        )
        logger.info("Added recurring message %s (channel=%s)", message.id, message.channel_id)
        return message

    async def update_recurring_message(self, message: RecurringMessage) -> bool:
        """Overwrite a message definition. Returns True if a row was updated.

        Scheduled jobs pick the new content up on their next fire; no
        reconciliation is needed.
        """
        updated = await self._write(
            (
                "UPDATE recurring_messages"
                " SET channel_id = ?, text = ?, send_as_embed = ?, embed_color = ?"
                " WHERE id = ?",
                (*message.to_row()[1:], message.id),
            )
        )
        return updated > 0

    async def delete_recurring_message(self, message_id: str) -> bool:
        """Delete a message and every task that sends it."""
        task_ids = [
            row[0]
            for row in await self._fetchall(
                "SELECT id FROM recurring_tasks WHERE message_id = ?", (message_id,)
            )
        ]
        deleted = await self._write(
            ("DELETE FROM recurring_tasks WHERE message_id = ?", (message_id,)),
            ("DELETE FROM recurring_messages WHERE id = ?", (message_id,)),
        )
        for task_id in task_ids:
            await self.changes.publish(TaskChange("deleted", task_id))
        return deleted > 0

    # -- Recurring tasks -------------------------------------------------------

    async def list_recurring_tasks(self) -> list[RecurringTask]:
        """Return every recurring task definition."""
        rows = await self._fetchall(
            "SELECT id, message_id, day_of_week, hour, minute"
            " FROM recurring_tasks ORDER BY id"
        )
        return [RecurringTask.from_row(row) for row in rows]

    async def get_recurring_task(self, task_id: str) -> RecurringTask | None:
        row = await self._fetchone(
            "SELECT id, message_id, day_of_week, hour, minute"
            " FROM recurring_tasks WHERE id = ?",
            (task_id,),
        )
        return RecurringTask.from_row(row) if row else None

    async def add_recurring_task(self, task: RecurringTask) -> RecurringTask:
        await self._write(
            (
                "INSERT INTO recurring_tasks (id, message_id, day_of_week, hour, minute)"
                " VALUES (?, ?, ?, ?, ?)",
                task.to_row(),
            )
        )
        logger.info("Added recurring task %s for message %s", task.id, task.message_id)
        await self.changes.publish(TaskChange("created", task.id))
        return task

    async def update_recurring_task(self, task: RecurringTask) -> bool:
        updated = await self._write(
            (
                "UPDATE recurring_tasks"
                " SET message_id = ?, day_of_week = ?, hour = ?, minute = ?"
                " WHERE id = ?",
                (*task.to_row()[1:], task.id),
            )
        )
        if updated:
            await self.changes.publish(TaskChange("updated", task.id))
        return updated > 0

    async def delete_recurring_task(self, task_id: str) -> bool:
        deleted = await self._write(
            ("DELETE FROM recurring_tasks WHERE id = ?", (task_id,))
        )
        if deleted:
            await self.changes.publish(TaskChange("deleted", task_id))
        return deleted > 0

    # -- Known servers ---------------------------------------------------------

    async def list_known_servers(self) -> list[KnownServer]:
        rows = await self._fetchall("SELECT server_id, name FROM servers ORDER BY server_id")
        return [KnownServer(server_id=row[0], name=row[1]) for row in rows]

    async def insert_known_server(self, server_id: str, name: str) -> None:
        await self._write(
            ("INSERT INTO servers (server_id, name) VALUES (?, ?)", (server_id, name))
        )
        logger.info("Added server %s (%s)", server_id, name)

    async def update_known_server(self, server_id: str, name: str) -> bool:
        updated = await self._write(
            ("UPDATE servers SET name = ? WHERE server_id = ?", (name, server_id))
        )
        return updated > 0

    async def delete_known_server(self, server_id: str) -> bool:
        """Delete a server together with its keyword and emoji rules."""
        deleted = await self._write(
            ("DELETE FROM keywords WHERE server_id = ?", (server_id,)),
            ("DELETE FROM whitelisted_emojis WHERE server_id = ?", (server_id,)),
            ("DELETE FROM servers WHERE server_id = ?", (server_id,)),
        )
        if deleted:
            logger.info("Removed server %s and its rules", server_id)
        return deleted > 0

    # -- Moderation rules ------------------------------------------------------

    async def list_keywords(self, channel_id: str, kind: str = "startswith") -> list[Keyword]:
        rows = await self._fetchall(
            "SELECT id, server_id, channel_id, text, kind FROM keywords"
            " WHERE channel_id = ? AND kind = ? ORDER BY id",
            (channel_id, kind),
        )
        return [Keyword(*row) for row in rows]

    async def add_keyword(
        self, server_id: str, channel_id: str, text: str, kind: str = "startswith"
    ) -> None:
        await self._write(
            (
                "INSERT INTO keywords (server_id, channel_id, kind, text) VALUES (?, ?, ?, ?)",
                (server_id, channel_id, kind, text),
            )
        )

    async def list_whitelisted_emojis(self, server_id: str) -> list[WhitelistedEmoji]:
        rows = await self._fetchall(
            "SELECT id, server_id, emoji FROM whitelisted_emojis WHERE server_id = ? ORDER BY id",
            (server_id,),
        )
        return [WhitelistedEmoji(*row) for row in rows]

    async def add_whitelisted_emoji(self, server_id: str, emoji: str) -> None:
        await self._write(
            (
                "INSERT INTO whitelisted_emojis (server_id, emoji) VALUES (?, ?)",
                (server_id, emoji),
            )
        )
