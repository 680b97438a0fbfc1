"""Channel keyword rules and server emoji allow-lists."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

import discord

if TYPE_CHECKING:
    from src.store.gateway import TaskStoreGateway
    from src.store.models import Keyword, WhitelistedEmoji

logger = logging.getLogger(__name__)


def violates_keywords(content: str, keywords: list[Keyword]) -> bool:
    """True if the channel has keywords and *content* starts with none of them."""
    return bool(keywords) and not any(content.startswith(k.text) for k in keywords)


def keyword_notice(username: str, keywords: list[Keyword]) -> str:
    listing = "\n".join(f"- `{k.text}`" for k in keywords)
    return (
        f"{username}, your message has been deleted. Every message in this channel"
        f" has to start with one of these.\n\n{listing}"
    )


def render_emoji(name: str | None, emoji_id: int | None) -> str:
    """Custom emojis render as ``<:name:id>``, unicode ones as themselves."""
    if emoji_id:
        return f"<:{name}:{emoji_id}>"
    return name or ""


def emoji_allowed(emoji: str, allowed: list[WhitelistedEmoji]) -> bool:
    return any(entry.emoji == emoji for entry in allowed)


def emoji_notice(username: str, allowed: list[WhitelistedEmoji]) -> str:
    listing = "\n".join(f"- {entry.emoji}" for entry in allowed)
    return (
        f"{username}, you reacted with an emoji that is not allowed in this server."
        f" Every reaction in this server has to be one of these.\n\n{listing}"
    )


class ModerationRules:
    """Applies keyword and emoji rules to incoming Discord events.

    Args:
        gateway: TaskStoreGateway holding the rules.
        client: The discord.py client (used to resolve reaction targets).
    """

    def __init__(self, gateway: TaskStoreGateway, client: discord.Client) -> None:
        self._gateway = gateway
        self._client = client

    async def check_message(self, message: discord.Message) -> bool:
        """Delete *message* if it breaks its channel's keyword rule.

        Returns True if the message was removed.
        """
        if message.author.bot:
            return False
        keywords = await self._gateway.list_keywords(str(message.channel.id))
        if not violates_keywords(message.content, keywords):
            return False

        logger.info(
            "Deleting message %s in channel %s: no required prefix",
            message.id,
            message.channel.id,
        )
        with contextlib.suppress(discord.HTTPException):
            await message.delete()
        await self._notify(message.author, keyword_notice(message.author.name, keywords))
        return True

    async def check_reaction(self, payload: discord.RawReactionActionEvent) -> bool:
        """Remove a reaction whose emoji is not allow-listed in its guild.

        Returns True if the reaction was removed.
        """
        if payload.guild_id is None:
            return False
        if self._client.user is not None and payload.user_id == self._client.user.id:
            return False

        allowed = await self._gateway.list_whitelisted_emojis(str(payload.guild_id))
        emoji = render_emoji(payload.emoji.name, payload.emoji.id)
        if emoji_allowed(emoji, allowed):
            return False

        member = payload.member
        if member is None:
            return False
        logger.info("Removing reaction %s from %s in guild %s", emoji, member.id, payload.guild_id)
        channel = self._client.get_channel(payload.channel_id)
        if channel is not None:
            try:
                message = channel.get_partial_message(payload.message_id)
                await message.remove_reaction(payload.emoji, member)
            except (AttributeError, discord.HTTPException):
                logger.warning("Could not remove reaction %s in channel %s", emoji, payload.channel_id)
        await self._notify(member, emoji_notice(member.name, allowed))
        return True

    async def _notify(self, user: discord.abc.User, text: str) -> None:
        try:
            await user.send(text)
        except discord.HTTPException:
            logger.info("Could not DM user %s", user.id)
