"""Reconciler: keeps jobs and known servers in step with their sources of truth.

Two entry points, both idempotent and safe to call concurrently:

- :meth:`Reconciler.reconcile_tasks` rebuilds the whole job generation from
  the stored recurring tasks.
- :meth:`Reconciler.reconcile_guilds` brings the ``servers`` table in line
  with the guilds the bot is in, then reconciles tasks.
"""

from __future__ import annotations

import asyncio
import functools
import itertools
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from apscheduler.triggers.interval import IntervalTrigger

from src.config import settings
from src.scheduler.compiler import ScheduleCompileError, compile_trigger
from src.scheduler.registry import RegisteredJob

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from typing import Any

    from src.messaging.channels import Messenger
    from src.scheduler.registry import JobRegistry
    from src.scheduler.runtime import TriggerRuntime
    from src.store.events import TaskChange, TaskChangeBus
    from src.store.gateway import TaskStoreGateway

logger = logging.getLogger(__name__)

GUILD_TIMER_ID = "reconcile:guilds"
TASK_TIMER_ID = "reconcile:tasks"


class Reconciler:
    """Single writer of the JobRegistry and of the known-servers table.

    Args:
        gateway: TaskStoreGateway for tasks and known servers.
        registry: JobRegistry receiving each new job generation.
        runtime: TriggerRuntime the compiled jobs call into.
        messenger: Chat-platform adapter for live guild membership.
        settle_delay: Seconds to wait before reading tasks, so a write that
            just happened is visible (default from settings).
        purge_stale_servers: Delete servers the bot has left (with their
            rules) instead of leaving them in place (default from settings).
        backfill_limit: Messages to prefetch per text channel after a guild
            sync; 0 disables it (default from settings).
    """

    def __init__(
        self,
        gateway: TaskStoreGateway,
        registry: JobRegistry,
        runtime: TriggerRuntime,
        messenger: Messenger,
        *,
        settle_delay: float | None = None,
        purge_stale_servers: bool | None = None,
        backfill_limit: int | None = None,
    ) -> None:
        self._gateway = gateway
        self._registry = registry
        self._runtime = runtime
        self._messenger = messenger
        self._settle_delay = (
            settings.settle_delay_seconds if settle_delay is None else settle_delay
        )
        self._purge = (
            settings.purge_stale_servers if purge_stale_servers is None else purge_stale_servers
        )
        self._backfill_limit = (
            settings.backfill_message_limit if backfill_limit is None else backfill_limit
        )
        self._tickets = itertools.count()
        self._guild_lock = asyncio.Lock()
        self._background: set[asyncio.Task] = set()

    # -- Task reconciliation ---------------------------------------------------

    async def reconcile_tasks(self) -> bool:
        """Replace every scheduled job with one per stored recurring task.

        Returns True if the new generation was installed. On a failed read the
        previous generation keeps running until the next pass.
        """
        ticket = next(self._tickets)
        await asyncio.sleep(self._settle_delay)

        try:
            tasks = await self._gateway.list_recurring_tasks()
        except Exception:
            logger.exception("Task reconciliation skipped: could not read recurring tasks")
            return False

        jobs: list[RegisteredJob] = []
        for task in tasks:
            try:
                spec = compile_trigger(task)
            except ScheduleCompileError as exc:
                logger.error("Skipping recurring task %s: %s", task.id, exc)
                continue
            jobs.append(
                RegisteredJob(
                    task_id=task.id,
                    message_id=task.message_id,
                    spec=spec,
                    callback=functools.partial(self._runtime.fire, task.message_id),
                )
            )

        return await self._registry.replace_all(jobs, revision=ticket)

    # -- Guild reconciliation --------------------------------------------------

    async def reconcile_guilds(self) -> bool:
        """Sync known servers with live guild membership, then reconcile tasks.

        Returns True if the server table was brought up to date.
        """
        async with self._guild_lock:
            synced = await self._sync_servers()
        await self.reconcile_tasks()
        await self._backfill()
        return synced

    async def _sync_servers(self) -> bool:
        try:
            live_ids = self._messenger.current_guild_ids()
            stored = {server.server_id: server for server in await self._gateway.list_known_servers()}

            added = renamed = removed = 0
            for guild_id in sorted(live_ids - stored.keys()):
                await self._gateway.insert_known_server(guild_id, self._messenger.guild_name(guild_id))
                added += 1

            for server_id, server in stored.items():
                if server_id not in live_ids:
                    if self._purge:
                        await self._gateway.delete_known_server(server_id)
                        removed += 1
                    continue
                name = self._messenger.guild_name(server_id)
                if name != server.name:
                    await self._gateway.update_known_server(server_id, name)
                    renamed += 1
        except Exception:
            logger.exception("Guild reconciliation failed")
            return False

        logger.info(
            "Guilds reconciled: %d live, %d added, %d renamed, %d removed",
            len(live_ids),
            added,
            renamed,
            removed,
        )
        return True

    async def _backfill(self) -> None:
        if self._backfill_limit <= 0:
            return
        try:
            warmed = await self._messenger.backfill(self._backfill_limit)
        except Exception:
            logger.warning("Message backfill failed", exc_info=True)
            return
        logger.info("Backfilled up to %d messages in %d channel(s)", self._backfill_limit, warmed)

    # -- Triggers --------------------------------------------------------------

    def start_timers(
        self,
        guild_interval_minutes: int | None = None,
        task_interval_seconds: int | None = None,
    ) -> None:
        """Add the periodic reconciliation jobs; each also runs once right away."""
        scheduler = self._registry.scheduler
        now = datetime.now(UTC)
        scheduler.add_job(
            self.reconcile_guilds,
            trigger=IntervalTrigger(
                minutes=guild_interval_minutes or settings.guild_sync_interval_minutes,
                timezone=UTC,
            ),
            id=GUILD_TIMER_ID,
            next_run_time=now,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.add_job(
            self.reconcile_tasks,
            trigger=IntervalTrigger(
                seconds=task_interval_seconds or settings.task_sync_interval_seconds,
                timezone=UTC,
            ),
            id=TASK_TIMER_ID,
            next_run_time=now,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info("Reconciliation timers started")

    def subscribe(self, bus: TaskChangeBus) -> None:
        """Reconcile tasks whenever a recurring task is created, updated or deleted."""
        bus.subscribe(self._on_task_change)

    def unsubscribe(self, bus: TaskChangeBus) -> None:
        bus.unsubscribe(self._on_task_change)

    async def _on_task_change(self, change: TaskChange) -> None:
        self._spawn(self.reconcile_tasks(), f"reconcile tasks after {change.kind} {change.task_id}")

    def request_guild_sync(self, reason: str) -> asyncio.Task:
        """Run :meth:`reconcile_guilds` in the background (for platform events)."""
        return self._spawn(self.reconcile_guilds(), reason)

    def _spawn(self, coro: Coroutine[Any, Any, Any], reason: str) -> asyncio.Task:
        logger.debug("Scheduling background reconciliation: %s", reason)
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every background reconciliation started so far."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel background reconciliations (shutdown)."""
        for task in list(self._background):
            task.cancel()
        await asyncio.gather(*list(self._background), return_exceptions=True)
        self._background.clear()
