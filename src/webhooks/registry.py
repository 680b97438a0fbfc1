"""Named webhook sources and the coroutines that handle them."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

WebhookHandler = Callable[[dict[str, Any]], Awaitable[None]]


class PayloadError(ValueError):
    """Raised by a handler when a JSON body does not describe a valid event."""


class WebhookRegistry:
    """Routes a webhook body to the handler registered for its source.

    Usage::

        registry = WebhookRegistry()

        @registry.handler("tasks")
        async def handle_task_change(payload: dict) -> None:
            ...

        await registry.dispatch("tasks", {"event": "created", "task_id": "t1"})
    """

    def __init__(self) -> None:
        self._handlers: dict[str, WebhookHandler] = {}

    def handler(self, source: str) -> Callable[[WebhookHandler], WebhookHandler]:
        def decorator(fn: WebhookHandler) -> WebhookHandler:
            previous = self._handlers.get(source)
            if previous is not None and previous is not fn:
                logger.warning("Replacing webhook handler for source %s", source)
            self._handlers[source] = fn
            logger.debug("Registered webhook handler: %s", source)
            return fn

        return decorator

    def get(self, source: str) -> WebhookHandler | None:
        return self._handlers.get(source)

    def __contains__(self, source: str) -> bool:
        return source in self._handlers

    @property
    def sources(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(self, source: str, payload: dict[str, Any]) -> bool:
        """Run the handler for *source*. Returns True if it completed.

        Handler failures are logged, never raised: the HTTP response has
        already been sent by the time this runs.
        """
        handler = self._handlers.get(source)
        if handler is None:
            logger.warning("No webhook handler for source=%s", source)
            return False
        try:
            await handler(payload)
        except PayloadError as exc:
            logger.warning("Rejected %s webhook: %s", source, exc)
            return False
        except Exception:
            logger.exception("Webhook handler failed: source=%s", source)
            return False
        return True


webhook_registry = WebhookRegistry()
