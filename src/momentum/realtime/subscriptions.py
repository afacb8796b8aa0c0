"""Subscription registry — event name → callbacks.

Learn: The registry is deliberately not owned by the socket. The channel
tears its transport down and builds a new one on every reconnect and token
change; if listeners lived on the transport, every caller would have to
re-register after each of those. Instead the channel looks listeners up
here on every delivery, so registrations survive any number of
reconnects.
"""

import inspect
from typing import Any, Callable

import structlog

logger = structlog.get_logger()

Callback = Callable[[Any], Any]


class SubscriptionRegistry:
    """Long-lived mapping of event name to an ordered set of callbacks."""

    def __init__(self):
        self._callbacks: dict[str, list[Callback]] = {}

    def on(self, event: str, callback: Callback) -> None:
        """Register `callback` for `event`. Registering twice is a no-op."""
        callbacks = self._callbacks.setdefault(event, [])
        if callback not in callbacks:
            callbacks.append(callback)

    def off(self, event: str, callback: Callback) -> None:
        callbacks = self._callbacks.get(event)
        if not callbacks or callback not in callbacks:
            return
        callbacks.remove(callback)
        if not callbacks:
            del self._callbacks[event]

    def listeners(self, event: str) -> list[Callback]:
        return list(self._callbacks.get(event, ()))

    def events(self) -> list[str]:
        return list(self._callbacks)

    def __len__(self) -> int:
        return sum(len(cbs) for cbs in self._callbacks.values())

    async def dispatch(self, event: str, data: Any) -> int:
        """Deliver one event to its callbacks, awaiting async ones in order.

        A failing callback is logged and skipped; it never stops delivery to
        the others or kills the channel. Returns the number of callbacks run.
        """
        delivered = 0
        for callback in self.listeners(event):
            try:
                result = callback(data)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                logger.exception("realtime.listener_failed", event_name=event)
        return delivered
