"""Tests for TaskStoreGateway: libsql CRUD and change publication."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from src.store.events import TaskChange
from src.store.gateway import TaskStoreGateway
from src.store.models import DayOfWeek, KnownServer, RecurringMessage, RecurringTask


async def _add_message(gateway: TaskStoreGateway, **kwargs) -> RecurringMessage:
    defaults = {"channel_id": "100", "text": "Standup", "id": "m1"}
    defaults.update(kwargs)
    return await gateway.add_recurring_message(RecurringMessage(**defaults))


def _task(task_id: str = "t1", message_id: str = "m1", **kwargs) -> RecurringTask:
    defaults = {"day_of_week": DayOfWeek.MON, "hour": 9, "minute": 0}
    defaults.update(kwargs)
    return RecurringTask(id=task_id, message_id=message_id, **defaults)


@pytest.fixture
def published(gateway: TaskStoreGateway) -> AsyncMock:
    handler = AsyncMock()
    gateway.changes.subscribe(handler)
    return handler


# -- Recurring messages --------------------------------------------------------


async def test_add_and_get_message(gateway: TaskStoreGateway) -> None:
    await _add_message(gateway, send_as_embed=True, embed_color=0x00FF00)

    fetched = await gateway.get_recurring_message("m1")
    assert fetched == RecurringMessage(
        id="m1", channel_id="100", text="Standup", send_as_embed=True, embed_color=0x00FF00
    )


async def test_get_message_not_found(gateway: TaskStoreGateway) -> None:
    assert await gateway.get_recurring_message("nope") is None


async def test_update_message(gateway: TaskStoreGateway) -> None:
    message = await _add_message(gateway)
    message.text = "Retro"

    assert await gateway.update_recurring_message(message) is True
    fetched = await gateway.get_recurring_message("m1")
    assert fetched is not None
    assert fetched.text == "Retro"


async def test_update_message_does_not_publish(
    gateway: TaskStoreGateway, published: AsyncMock
) -> None:
    message = await _add_message(gateway)
    message.text = "Retro"
    await gateway.update_recurring_message(message)
    published.assert_not_called()


async def test_delete_message_removes_its_tasks(
    gateway: TaskStoreGateway, published: AsyncMock
) -> None:
    await _add_message(gateway)
    await gateway.add_recurring_task(_task("t1"))
    published.reset_mock()

    assert await gateway.delete_recurring_message("m1") is True
    assert await gateway.list_recurring_tasks() == []
    published.assert_awaited_once_with(TaskChange("deleted", "t1"))


# -- Recurring tasks -----------------------------------------------------------


async def test_add_and_list_tasks(gateway: TaskStoreGateway) -> None:
    await _add_message(gateway)
    await gateway.add_recurring_task(_task("t1"))
    await gateway.add_recurring_task(_task("t2", day_of_week=DayOfWeek.EVERY_DAY, hour=17))

    tasks = await gateway.list_recurring_tasks()
    assert [t.id for t in tasks] == ["t1", "t2"]
    assert tasks[1].day_of_week is DayOfWeek.EVERY_DAY
    assert tasks[1].hour == 17


async def test_list_tasks_empty(gateway: TaskStoreGateway) -> None:
    assert await gateway.list_recurring_tasks() == []


async def test_add_task_publishes_created(
    gateway: TaskStoreGateway, published: AsyncMock
) -> None:
    await _add_message(gateway)
    await gateway.add_recurring_task(_task("t1"))
    published.assert_awaited_once_with(TaskChange("created", "t1"))


async def test_update_task_publishes_updated(
    gateway: TaskStoreGateway, published: AsyncMock
) -> None:
    await _add_message(gateway)
    task = await gateway.add_recurring_task(_task("t1"))
    task.hour = 10

    assert await gateway.update_recurring_task(task) is True
    published.assert_awaited_with(TaskChange("updated", "t1"))
    fetched = await gateway.get_recurring_task("t1")
    assert fetched is not None
    assert fetched.hour == 10


async def test_update_missing_task_is_silent(
    gateway: TaskStoreGateway, published: AsyncMock
) -> None:
    assert await gateway.update_recurring_task(_task("ghost")) is False
    published.assert_not_called()


async def test_delete_task_publishes_deleted(
    gateway: TaskStoreGateway, published: AsyncMock
) -> None:
    await _add_message(gateway)
    await gateway.add_recurring_task(_task("t1"))

    assert await gateway.delete_recurring_task("t1") is True
    published.assert_awaited_with(TaskChange("deleted", "t1"))
    assert await gateway.get_recurring_task("t1") is None


async def test_delete_missing_task_returns_false(gateway: TaskStoreGateway) -> None:
    assert await gateway.delete_recurring_task("ghost") is False


async def test_unknown_day_survives_listing(gateway: TaskStoreGateway) -> None:
    await _add_message(gateway)
    await gateway.add_recurring_task(_task("t1", day_of_week="FUNDAY"))

    tasks = await gateway.list_recurring_tasks()
    assert tasks[0].day_of_week == "FUNDAY"


# -- Known servers -------------------------------------------------------------


async def test_insert_and_list_servers(gateway: TaskStoreGateway) -> None:
    await gateway.insert_known_server("B", "Bravo")
    await gateway.insert_known_server("A", "Alpha")

    assert await gateway.list_known_servers() == [
        KnownServer("A", "Alpha"),
        KnownServer("B", "Bravo"),
    ]


async def test_update_server_name(gateway: TaskStoreGateway) -> None:
    await gateway.insert_known_server("A", "Alpha")
    assert await gateway.update_known_server("A", "Alpha 2") is True
    assert await gateway.list_known_servers() == [KnownServer("A", "Alpha 2")]


async def test_delete_server_cascades_rules(gateway: TaskStoreGateway) -> None:
    await gateway.insert_known_server("A", "Alpha")
    await gateway.insert_known_server("B", "Bravo")
    await gateway.add_keyword("A", "c1", "!report")
    await gateway.add_whitelisted_emoji("A", "👍")
    await gateway.add_keyword("B", "c2", "!bug")

    assert await gateway.delete_known_server("A") is True

    assert await gateway.list_known_servers() == [KnownServer("B", "Bravo")]
    assert await gateway.list_keywords("c1") == []
    assert await gateway.list_whitelisted_emojis("A") == []
    assert [k.text for k in await gateway.list_keywords("c2")] == ["!bug"]


async def test_delete_missing_server_returns_false(gateway: TaskStoreGateway) -> None:
    assert await gateway.delete_known_server("ghost") is False


# -- Moderation rules ----------------------------------------------------------


async def test_keywords_filtered_by_kind(gateway: TaskStoreGateway) -> None:
    await gateway.insert_known_server("A", "Alpha")
    await gateway.add_keyword("A", "c1", "!report")
    await gateway.add_keyword("A", "c1", "regex", kind="matches")

    keywords = await gateway.list_keywords("c1")
    assert [(k.text, k.kind) for k in keywords] == [("!report", "startswith")]


# -- Singleton -----------------------------------------------------------------


def test_singleton_get() -> None:
    TaskStoreGateway._reset()
    try:
        assert TaskStoreGateway.get() is TaskStoreGateway.get()
    finally:
        TaskStoreGateway._reset()


async def test_schema_created_lazily(tmp_path: Path, _no_turso: None) -> None:
    gw = TaskStoreGateway(db_path=tmp_path / "lazy.db")
    assert await gw.list_known_servers() == []
