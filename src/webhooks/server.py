"""HTTP endpoint the admin interface calls after editing recurring tasks.

Shares the bot's event loop; aiohttp's AppRunner/TCPSite give a non-blocking
start and stop. A notification makes the scheduler rebuild its jobs right
away instead of on the next periodic pass.
"""

from __future__ import annotations

import asyncio
import hmac
import logging
from typing import Any

from aiohttp import web

from src.config import settings
from src.webhooks.registry import WebhookRegistry, webhook_registry

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Webhook-Secret"

REGISTRY_KEY = web.AppKey("registry", WebhookRegistry)
SECRET_KEY = web.AppKey("secret", str)
PENDING_KEY = web.AppKey("pending", set)


def _authorized(request: web.Request) -> bool:
    expected = request.app[SECRET_KEY]
    supplied = request.headers.get(SECRET_HEADER, "")
    return bool(expected) and hmac.compare_digest(supplied.encode(), expected.encode())


async def _handle_webhook(request: web.Request) -> web.Response:
    """POST /webhooks/<source>: accept the body, handle it in the background."""
    source = request.match_info["source"]
    if not _authorized(request):
        logger.warning("Webhook rejected: invalid secret (source=%s)", source)
        return web.json_response({"error": "unauthorized"}, status=401)

    registry = request.app[REGISTRY_KEY]
    if source not in registry:
        return web.json_response({"error": "unknown source"}, status=404)

    try:
        payload: Any = await request.json()
    except ValueError:
        return web.json_response({"error": "invalid JSON"}, status=400)
    if not isinstance(payload, dict):
        return web.json_response({"error": "expected a JSON object"}, status=400)

    logger.info("Webhook received: source=%s, keys=%s", source, sorted(payload)[:10])
    pending = request.app[PENDING_KEY]
    task = asyncio.create_task(registry.dispatch(source, payload))
    pending.add(task)
    task.add_done_callback(pending.discard)
    return web.json_response({"ok": True})


async def _health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "sources": request.app[REGISTRY_KEY].sources})


async def _drain(app: web.Application) -> None:
    pending = app[PENDING_KEY]
    if pending:
        await asyncio.gather(*list(pending), return_exceptions=True)


def create_web_app(
    registry: WebhookRegistry | None = None, secret: str | None = None
) -> web.Application:
    """Build the aiohttp application.

    Args:
        registry: Handlers to route to (the shared ``webhook_registry`` by default).
        secret: Shared secret callers send in ``X-Webhook-Secret``; when empty
            every notification is refused (default from settings).
    """
    app = web.Application()
    app[REGISTRY_KEY] = registry if registry is not None else webhook_registry
    app[SECRET_KEY] = settings.webhook_secret if secret is None else secret
    app[PENDING_KEY] = set()
    app.router.add_get("/health", _health)
    app.router.add_post("/webhooks/{source}", _handle_webhook)
    app.on_cleanup.append(_drain)
    return app


class WebhookServer:
    """Starts and stops the change-notification endpoint."""

    def __init__(self, port: int | None = None, secret: str | None = None) -> None:
        self.port = port or settings.webhook_port
        self._secret = settings.webhook_secret if secret is None else secret
        self._runner: web.AppRunner | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        if not self._secret:
            logger.warning("WEBHOOK_SECRET is empty, change notifications disabled")
            return

        # Registers the "tasks" source.
        import src.webhooks.handlers.tasks  # noqa: F401

        self._runner = web.AppRunner(create_web_app(webhook_registry, self._secret))
        await self._runner.setup()
        site = web.TCPSite(self._runner, "0.0.0.0", self.port)
        await site.start()
        logger.info(
            "Webhook server listening on port %d (sources: %s)",
            self.port,
            ", ".join(webhook_registry.sources),
        )

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        logger.info("Webhook server stopped")
