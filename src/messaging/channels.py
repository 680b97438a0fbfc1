"""Messenger protocol: what the scheduler and reconciler need from the chat platform."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Messenger(Protocol):
    """Protocol that chat-platform adapters must satisfy."""

    def current_guild_ids(self) -> set[str]:
        """IDs of the guilds the bot currently belongs to (from the client cache)."""
        ...

    def guild_name(self, guild_id: str) -> str:
        """Display name of a guild the bot belongs to."""
        ...

    async def fetch_channel(self, channel_id: str) -> Any:
        """Resolve a channel by ID. Raises if it does not exist or is not visible."""
        ...

    async def send_text(self, channel: Any, text: str) -> None:
        """Send a plain text message."""
        ...

    async def send_embed(self, channel: Any, description: str, color: int) -> None:
        """Send a rich embed with the given description and color."""
        ...

    async def backfill(self, limit: int) -> int:
        """Fetch up to *limit* recent messages from every cached text channel.

        Returns the number of channels that were warmed.
        """
        ...
