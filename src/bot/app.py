"""Discord client factory and event wiring."""

from __future__ import annotations

import logging

import discord

from src.messaging.discord_messenger import DiscordMessenger
from src.moderation.rules import ModerationRules
from src.scheduler.reconciler import Reconciler
from src.scheduler.registry import JobRegistry
from src.scheduler.runtime import TriggerRuntime
from src.store.gateway import TaskStoreGateway
from src.webhooks.server import WebhookServer

logger = logging.getLogger(__name__)


def _intents() -> discord.Intents:
    intents = discord.Intents.none()
    intents.guilds = True
    intents.guild_messages = True
    intents.guild_reactions = True
    intents.message_content = True
    return intents


class GuildkeeperClient(discord.Client):
    """Discord client that owns the scheduler, the reconciler and the rule checks.

    Args:
        gateway: TaskStoreGateway to use (the shared instance by default).
        webhook_server: Change-notification server (created when omitted).
    """

    def __init__(
        self,
        gateway: TaskStoreGateway | None = None,
        webhook_server: WebhookServer | None = None,
    ) -> None:
        super().__init__(intents=_intents())
        self.gateway = gateway or TaskStoreGateway.get()
        self.messenger = DiscordMessenger(self)
        self.registry = JobRegistry()
        self.runtime = TriggerRuntime(self.gateway, self.messenger)
        self.reconciler = Reconciler(self.gateway, self.registry, self.runtime, self.messenger)
        self.rules = ModerationRules(self.gateway, self)
        self.webhook_server = webhook_server or WebhookServer()
        self._services_started = False

    # -- Lifecycle -------------------------------------------------------------

    async def on_ready(self) -> None:
        logger.info(
            "Logged in as %s. Ready to serve %d server(s)",
            self.user,
            len(self.guilds),
        )
        # on_ready fires again after every reconnect.
        if self._services_started:
            return
        await self.start_services()

    async def start_services(self) -> bool:
        """Initialize storage, then start the job registry, timers and webhooks."""
        try:
            await self.gateway.initialize()
        except Exception:
            logger.exception("Storage initialization failed; scheduler not started")
            return False
        self._services_started = True

        self.reconciler.subscribe(self.gateway.changes)
        self.registry.start()
        # Both timers also fire immediately, covering the startup guild sync.
        self.reconciler.start_timers()
        await self.webhook_server.start()
        return True

    async def close(self) -> None:
        if self._services_started:
            self.reconciler.unsubscribe(self.gateway.changes)
            await self.reconciler.aclose()
            self.registry.shutdown()
            await self.webhook_server.stop()
            self._services_started = False
        await super().close()

    # -- Guild membership ------------------------------------------------------

    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.info("Joined guild %s (%s)", guild.name, guild.id)
        if self._services_started:
            self.reconciler.request_guild_sync(f"joined {guild.id}")

    async def on_guild_remove(self, guild: discord.Guild) -> None:
        logger.info("Left guild %s (%s)", guild.name, guild.id)
        if self._services_started:
            self.reconciler.request_guild_sync(f"left {guild.id}")

    # -- Moderation ------------------------------------------------------------

    async def on_message(self, message: discord.Message) -> None:
        if not self._services_started:
            return
        try:
            await self.rules.check_message(message)
        except Exception:
            logger.exception("Keyword check failed for message %s", message.id)

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        if not self._services_started:
            return
        try:
            await self.rules.check_reaction(payload)
        except Exception:
            logger.exception("Emoji check failed for message %s", payload.message_id)


def create_client() -> GuildkeeperClient:
    """Build the Discord client with the shared task store."""
    return GuildkeeperClient(gateway=TaskStoreGateway.get())
