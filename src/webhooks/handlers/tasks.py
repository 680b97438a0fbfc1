"""Admin change notifications for recurring tasks.

Payload: ``{"event": "created" | "updated" | "deleted", "task_id": "<id>"}``.
The edit is already committed by the time this arrives; the handler only
announces it on the gateway's change bus so the reconciler picks it up.
"""

from __future__ import annotations

from typing import Any

from src.store.events import CHANGE_KINDS, TaskChange
from src.store.gateway import TaskStoreGateway
from src.webhooks.registry import PayloadError, webhook_registry


def parse_task_change(payload: dict[str, Any]) -> TaskChange:
    event = payload.get("event")
    if event not in CHANGE_KINDS:
        msg = f"unknown event {event!r}"
        raise PayloadError(msg)
    task_id = payload.get("task_id")
    if not isinstance(task_id, str) or not task_id:
        msg = "task_id must be a non-empty string"
        raise PayloadError(msg)
    return TaskChange(event, task_id)


@webhook_registry.handler("tasks")
async def handle_task_change(payload: dict[str, Any]) -> None:
    await TaskStoreGateway.get().changes.publish(parse_task_change(payload))
