"""Guildkeeper entry point."""

import logging

from src.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Connect to Discord and run until interrupted."""
    from src.bot.app import create_client

    if not settings.discord_token:
        logger.error("DISCORD_TOKEN is empty, cannot connect")
        raise SystemExit(1)

    logger.info(
        "Starting Guildkeeper (guild sync every %d min, task sync every %ds, policy=%s)",
        settings.guild_sync_interval_minutes,
        settings.task_sync_interval_seconds,
        settings.guild_sync_policy,
    )
    client = create_client()
    # Logging is already configured above; keep discord.py from adding a handler.
    client.run(settings.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
