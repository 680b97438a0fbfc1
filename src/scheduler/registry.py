"""JobRegistry: owns the live generation of recurring-message jobs."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import UTC
from typing import TYPE_CHECKING

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from src.scheduler.compiler import TriggerSpec

logger = logging.getLogger(__name__)

JOB_PREFIX = "recurring"


@dataclass(frozen=True)
class RegisteredJob:
    """A compiled task bound to the callback that runs when it fires.

    Attributes:
        task_id: The RecurringTask this job was compiled from.
        message_id: The RecurringMessage sent on each fire.
        spec: The compiled trigger.
        callback: Zero-argument coroutine function run on each fire.
    """

    task_id: str
    message_id: str
    spec: TriggerSpec
    callback: Callable[[], Awaitable[None]]

    def job_id(self, generation: int) -> str:
        return f"{JOB_PREFIX}:{generation}:{self.task_id}"


class JobRegistry:
    """Holds exactly one generation of recurring jobs at a time.

    :meth:`replace_all` is the only way to change the installed jobs. Calls are
    serialized, and each job checks its generation before running so nothing
    from a replaced generation fires once a replacement has begun.

    Args:
        scheduler: APScheduler instance to run jobs on (a UTC
            ``AsyncIOScheduler`` is created when omitted).
    """

    def __init__(self, scheduler: AsyncIOScheduler | None = None) -> None:
        self._scheduler = scheduler or AsyncIOScheduler(timezone=UTC)
        self._lock = asyncio.Lock()
        self._jobs: tuple[RegisteredJob, ...] = ()
        self._generation = 0
        self._revision = -1

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    @property
    def running(self) -> bool:
        return self._scheduler.running

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def jobs(self) -> tuple[RegisteredJob, ...]:
        """The current generation (an immutable snapshot)."""
        return self._jobs

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Job registry started")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._generation += 1
            self._scheduler.shutdown(wait=False)
            logger.info("Job registry stopped")

    # -- Mutation --------------------------------------------------------------

    async def replace_all(
        self, new_jobs: Iterable[RegisteredJob], *, revision: int | None = None
    ) -> bool:
        """Stop the current generation and install *new_jobs* in its place.

        *revision* orders competing callers: a call carrying a revision older
        than the last installed one is dropped so it cannot undo newer state.

        Returns True if *new_jobs* were installed.
        """
        new_jobs = tuple(new_jobs)
        async with self._lock:
            if revision is not None and revision < self._revision:
                logger.info(
                    "Discarding stale job generation (revision %d < %d)",
                    revision,
                    self._revision,
                )
                return False

            previous = self._generation
            self._generation += 1
            for job in self._jobs:
                with contextlib.suppress(JobLookupError):
                    self._scheduler.remove_job(job.job_id(previous))

            for job in new_jobs:
                self._scheduler.add_job(
                    self._guarded(self._generation, job),
                    trigger=job.spec.to_trigger(),
                    id=job.job_id(self._generation),
                    name=f"{job.task_id} ({job.spec.expression})",
                    misfire_grace_time=None,
                    coalesce=True,
                    replace_existing=True,
                )

            self._jobs = new_jobs
            if revision is not None:
                self._revision = revision
            logger.info(
                "Scheduled %d recurring job(s) (generation %d)",
                len(new_jobs),
                self._generation,
            )
            return True

    def _guarded(self, generation: int, job: RegisteredJob) -> Callable[[], Awaitable[None]]:
        async def fire() -> None:
            if generation != self._generation:
                logger.debug(
                    "Skipping fire of %s from replaced generation %d", job.task_id, generation
                )
                return
            await job.callback()

        return fire
