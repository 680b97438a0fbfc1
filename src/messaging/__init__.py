"""Chat-platform boundary: the Messenger protocol and its Discord adapter."""

from src.messaging.channels import Messenger
from src.messaging.discord_messenger import DiscordMessenger

__all__ = ["DiscordMessenger", "Messenger"]
