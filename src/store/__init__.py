"""Persistence for recurring messages/tasks, known servers and moderation rules."""

from src.store.events import TaskChange, TaskChangeBus
from src.store.gateway import TaskStoreGateway
from src.store.models import (
    DayOfWeek,
    Keyword,
    KnownServer,
    RecurringMessage,
    RecurringTask,
    WhitelistedEmoji,
)

__all__ = [
    "DayOfWeek",
    "Keyword",
    "KnownServer",
    "RecurringMessage",
    "RecurringTask",
    "TaskChange",
    "TaskChangeBus",
    "TaskStoreGateway",
    "WhitelistedEmoji",
]
