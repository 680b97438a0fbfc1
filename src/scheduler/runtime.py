"""TriggerRuntime: sends a recurring message when its trigger fires."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.config import settings

if TYPE_CHECKING:
    from src.messaging.channels import Messenger
    from src.store.gateway import TaskStoreGateway
    from src.store.models import RecurringMessage

logger = logging.getLogger(__name__)


class TriggerRuntime:
    """Resolves and dispatches a recurring message at fire time.

    The message is always re-read from the store, so edits made after the
    job was scheduled apply to the next fire.

    Args:
        gateway: TaskStoreGateway to read message definitions from.
        messenger: Chat-platform adapter used to resolve channels and send.
        default_color: Embed color used when the message has none.
    """

    def __init__(
        self,
        gateway: TaskStoreGateway,
        messenger: Messenger,
        default_color: int | None = None,
    ) -> None:
        self._gateway = gateway
        self._messenger = messenger
        self._default_color = (
            settings.default_embed_color if default_color is None else default_color
        )

    async def fire(self, message_id: str) -> bool:
        """Send the message identified by *message_id*.

        Returns True if it was dispatched. Never raises: a missing message is a
        no-op and a failed send is logged, leaving the job scheduled.
        """
        try:
            message = await self._gateway.get_recurring_message(message_id)
        except Exception:
            logger.exception("Could not load recurring message %s", message_id)
            return False
        if message is None:
            logger.info("Recurring message %s no longer exists, skipping", message_id)
            return False

        try:
            await self._dispatch(message)
        except Exception:
            logger.exception(
                "Failed to send recurring message %s to channel %s",
                message_id,
                message.channel_id,
            )
            return False
        logger.info("Sent recurring message %s to channel %s", message_id, message.channel_id)
        return True

    async def _dispatch(self, message: RecurringMessage) -> None:
        channel = await self._messenger.fetch_channel(message.channel_id)
        if message.send_as_embed:
            color = self._default_color if message.embed_color is None else message.embed_color
            await self._messenger.send_embed(channel, message.text, color)
        else:
            await self._messenger.send_text(channel, message.text)
