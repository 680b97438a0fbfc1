"""Change notifications for recurring-task writes.

The gateway publishes a :class:`TaskChange` after every committed
create/update/delete of a recurring task. Subscribers (the reconciler) react
to it; nothing is triggered implicitly from inside the data model.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

ChangeKind = Literal["created", "updated", "deleted"]
CHANGE_KINDS: tuple[str, ...] = ("created", "updated", "deleted")


@dataclass(frozen=True)
class TaskChange:
    kind: ChangeKind
    task_id: str


# Subscriber signature: async (change: TaskChange) -> None
ChangeHandler = Callable[[TaskChange], Awaitable[None]]


class TaskChangeBus:
    """Fan-out of task changes to async subscribers.

    Usage::

        bus = TaskChangeBus()

        @bus.subscribe
        async def on_change(change: TaskChange) -> None:
            ...
    """

    def __init__(self) -> None:
        self._handlers: list[ChangeHandler] = []

    def subscribe(self, handler: ChangeHandler) -> ChangeHandler:
        if handler not in self._handlers:
            self._handlers.append(handler)
            logger.debug("Subscribed to task changes: %r", handler)
        return handler

    def unsubscribe(self, handler: ChangeHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    @property
    def subscribers(self) -> int:
        return len(self._handlers)

    async def publish(self, change: TaskChange) -> None:
        """Deliver *change* to every subscriber in subscription order.

        A failing subscriber is logged and does not stop delivery to the rest.
        """
        logger.info("Task %s: %s", change.kind, change.task_id)
        for handler in list(self._handlers):
            try:
                await handler(change)
            except Exception:
                logger.exception("Task change subscriber failed: %r", handler)
