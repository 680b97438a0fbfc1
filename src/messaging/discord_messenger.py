"""Discord implementation of the Messenger protocol."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord

if TYPE_CHECKING:
    from discord.abc import Messageable

logger = logging.getLogger(__name__)


class DiscordMessenger:
    """Reads guild membership from a discord.py client and sends messages.

    Guild membership comes from the client's in-memory cache, which the
    gateway keeps current through guild join/leave events.
    """

    def __init__(self, client: discord.Client) -> None:
        self._client = client

    def current_guild_ids(self) -> set[str]:
        return {str(guild.id) for guild in self._client.guilds}

    def guild_name(self, guild_id: str) -> str:
        guild = self._client.get_guild(int(guild_id))
        return guild.name if guild is not None else ""

    async def fetch_channel(self, channel_id: str) -> Messageable:
        channel = self._client.get_channel(int(channel_id))
        if channel is None:
            channel = await self._client.fetch_channel(int(channel_id))
        if not isinstance(channel, discord.abc.Messageable):
            msg = f"Channel {channel_id} cannot receive messages"
            raise TypeError(msg)
        return channel

    async def send_text(self, channel: Messageable, text: str) -> None:
        await channel.send(text)

    async def send_embed(self, channel: Messageable, description: str, color: int) -> None:
        embed = discord.Embed(description=description, color=discord.Color(color))
        await channel.send(embed=embed)

    async def backfill(self, limit: int) -> int:
        """Pull recent history into the message cache for every text channel."""
        warmed = 0
        for channel in self._client.get_all_channels():
            if not isinstance(channel, discord.TextChannel):
                continue
            try:
                async for _ in channel.history(limit=limit):
                    pass
            except discord.HTTPException as exc:
                logger.debug("Backfill skipped for #%s (%s): %s", channel.name, channel.id, exc)
                continue
            logger.debug("Fetched messages for #%s", channel.name)
            warmed += 1
        return warmed
