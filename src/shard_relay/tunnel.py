"""
Control-channel capability consumed by the relay client.

The control channel itself (shard listing, relay negotiation, the
connection to the holder) lives outside this package. The client only
needs the small surface described by :class:`ControlChannel`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

EventHandler = Callable[[], None]


class EventHook:
    """Payload-less publish/subscribe point.

    Handlers are plain callables. They may fire many times (every
    reconnect) so they must be idempotent, and they must not block.
    A failing handler is logged and does not stop the others.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._handlers: list[EventHandler] = []

    def __len__(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: EventHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> bool:
        """Remove a handler. Returns False if it was not subscribed."""
        try:
            self._handlers.remove(handler)
        except ValueError:
            return False
        return True

    def emit(self) -> None:
        for handler in list(self._handlers):
            try:
                handler()
            except Exception:
                logger.exception("Handler for event %r failed", self.name)


@runtime_checkable
class ControlChannel(Protocol):
    """What the client needs from the control channel."""

    on_connected: EventHook
    on_disconnected: EventHook

    async def start(self) -> None:
        """Begin connecting; connection state is reported through the hooks."""
        ...

    async def list_shards(self) -> list[dict[str, Any]] | None:
        """Current shard listing; each entry carries at least an address."""
        ...

    async def negotiate_relay(self, shard_address: str, transport: str) -> tuple[str, str]:
        """Ask the holder for a relay through ``shard_address``.

        Returns:
            ``(host_address, guest_address)``. Either one containing
            ``"ERROR"`` signals a failed negotiation.
        """
        ...
