"""Tests for the Discord client wiring."""

from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest

from src.bot.app import GuildkeeperClient, _intents
from src.scheduler.reconciler import Reconciler
from src.store.gateway import TaskStoreGateway


@pytest.fixture
def webhook_server() -> MagicMock:
    server = MagicMock()
    server.start = AsyncMock()
    server.stop = AsyncMock()
    return server


@pytest.fixture
async def client(gateway: TaskStoreGateway, webhook_server: MagicMock):
    c = GuildkeeperClient(gateway=gateway, webhook_server=webhook_server)
    c.reconciler.start_timers = MagicMock()
    yield c
    c.registry.shutdown()


def test_intents_cover_guilds_messages_and_reactions() -> None:
    intents = _intents()
    assert intents.guilds
    assert intents.guild_messages
    assert intents.guild_reactions
    assert intents.message_content
    assert not intents.members


# -- Lifecycle -----------------------------------------------------------------


async def test_start_services(client: GuildkeeperClient, webhook_server: MagicMock) -> None:
    assert await client.start_services() is True

    assert client.registry.running
    assert client.gateway.changes.subscribers == 1
    client.reconciler.start_timers.assert_called_once_with()
    webhook_server.start.assert_awaited_once()


async def test_storage_failure_blocks_start(
    client: GuildkeeperClient, webhook_server: MagicMock
) -> None:
    with patch.object(client.gateway, "initialize", AsyncMock(side_effect=OSError("locked"))):
        assert await client.start_services() is False

    assert not client.registry.running
    webhook_server.start.assert_not_called()


async def test_reconnect_does_not_restart_services(client: GuildkeeperClient) -> None:
    with patch.object(client, "start_services", AsyncMock(wraps=client.start_services)) as start:
        await client.on_ready()
        await client.on_ready()

    start.assert_awaited_once()
    assert client.gateway.changes.subscribers == 1


async def test_close_stops_services(client: GuildkeeperClient, webhook_server: MagicMock) -> None:
    await client.start_services()

    with patch.object(discord.Client, "close", AsyncMock()) as base_close:
        await client.close()

    assert not client.registry.running
    assert client.gateway.changes.subscribers == 0
    webhook_server.stop.assert_awaited_once()
    base_close.assert_awaited_once()


# -- Events --------------------------------------------------------------------


def _guild(guild_id: int = 3) -> MagicMock:
    guild = MagicMock()
    guild.id = guild_id
    guild.name = "Charlie"
    return guild


async def test_guild_join_requests_sync(client: GuildkeeperClient) -> None:
    client._services_started = True
    with patch.object(Reconciler, "request_guild_sync") as sync:
        await client.on_guild_join(_guild())
        await client.on_guild_remove(_guild())

    assert sync.call_count == 2


async def test_guild_events_before_ready_are_ignored(client: GuildkeeperClient) -> None:
    with patch.object(Reconciler, "request_guild_sync") as sync:
        await client.on_guild_join(_guild())

    sync.assert_not_called()


async def test_message_check_failure_is_logged(client: GuildkeeperClient) -> None:
    client._services_started = True
    client.rules.check_message = AsyncMock(side_effect=RuntimeError("db down"))

    # Should not raise
    await client.on_message(MagicMock())
    client.rules.check_message.assert_awaited_once()


async def test_reaction_check_runs_rules(client: GuildkeeperClient) -> None:
    client._services_started = True
    client.rules.check_reaction = AsyncMock(return_value=False)
    payload = MagicMock()

    await client.on_raw_reaction_add(payload)
    client.rules.check_reaction.assert_awaited_once_with(payload)
