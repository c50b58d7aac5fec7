"""
Link supervisor - owner of the single active relayed link.

State is a tagged union: :class:`Idle` or :class:`Active`. Every move
into ``Active`` goes through :meth:`LinkSupervisor.establish`, which
stops the current link before anything about the next one happens, so
two links never exist at the same time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..addressing import SocketAddress, format_address, resolve_udp_address
from ..errors import LinkEstablishError, LinkTeardownError, UnsupportedTransportError
from .status import LinkStatus
from .transport import DataLink, LinkFactory, TransportKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    """No link."""


@dataclass(frozen=True)
class Active:
    """One running link and what it was established for."""

    link: DataLink
    shard_address: str
    host_address: SocketAddress
    transport: TransportKind


LinkState = Idle | Active


class LinkSupervisor:
    """Creates, replaces and reports on the relayed link.

    Usage::

        supervisor = LinkSupervisor({TransportKind.UDP: UDPLink}, owner=client)
        await supervisor.establish("203.0.113.7:31337", "198.51.100.2:40000", "udp")
        supervisor.status()

    Calls are serialised; a second ``establish`` waits for the first.
    """

    def __init__(
        self,
        factories: Mapping[TransportKind, LinkFactory],
        *,
        owner: Any = None,
    ) -> None:
        self._factories = dict(factories)
        self._owner = owner
        self._state: LinkState = Idle()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def is_active(self) -> bool:
        return isinstance(self._state, Active)

    @property
    def supported_transports(self) -> list[TransportKind]:
        return list(self._factories)

    def register_transport(self, kind: TransportKind, factory: LinkFactory) -> None:
        self._factories[kind] = factory

    def resolve_transport(self, transport: str | TransportKind) -> TransportKind:
        """Validate that ``transport`` names a kind this supervisor can build.

        Raises:
            UnsupportedTransportError: Unknown kind, or no factory for it.
        """
        kind = TransportKind.parse(transport)
        if kind not in self._factories:
            raise UnsupportedTransportError(f"No link implementation for transport {kind.value!r}")
        return kind

    async def establish(
        self,
        shard_address: str,
        host_address: str,
        transport: str | TransportKind,
    ) -> LinkStatus:
        """Replace whatever link exists with a new one to ``host_address``.

        Args:
            shard_address: Shard the relay goes through.
            host_address: Negotiated ``host:port`` the link talks to.
            transport: Transport kind, e.g. ``"udp"``.

        Returns:
            Status of the new link.

        Raises:
            UnsupportedTransportError: Before touching the current link.
            LinkTeardownError: If the current link fails to stop.
            LinkEstablishError: If the host address does not resolve or
                the link fails to start. The supervisor is Idle afterwards.
        """
        kind = self.resolve_transport(transport)

        async with self._lock:
            await self._stop_current()

            try:
                host = await resolve_udp_address(host_address)
            except (ValueError, OSError) as e:
                logger.error("Cannot resolve relay host %s: %s", host_address, e)
                raise LinkEstablishError(f"Cannot resolve relay host {host_address!r}: {e}") from e

            shard: SocketAddress | None
            try:
                shard = await resolve_udp_address(shard_address)
            except (ValueError, OSError) as e:
                logger.warning("Cannot resolve shard %s for link: %s", shard_address, e)
                shard = None

            link = self._factories[kind](self._owner, shard, host)
            try:
                await link.start()
            except Exception as e:
                logger.error("Link to %s failed to start: %s", host_address, e)
                raise LinkEstablishError(f"Link to {host_address!r} failed to start: {e}") from e

            self._state = Active(
                link=link,
                shard_address=shard_address,
                host_address=host,
                transport=kind,
            )
            logger.info(
                "Link established via shard %s to %s (%s)",
                shard_address,
                format_address(host),
                kind.value,
            )
            return LinkStatus.from_link(link)

    async def teardown(self) -> bool:
        """Stop the current link, if any.

        Returns:
            True if a link was stopped.

        Raises:
            LinkTeardownError: If the link fails to stop. The supervisor is
                Idle afterwards either way.
        """
        async with self._lock:
            return await self._stop_current()

    def status(self) -> LinkStatus:
        state = self._state
        if isinstance(state, Active):
            return LinkStatus.from_link(state.link)
        return LinkStatus.idle()

    async def _stop_current(self) -> bool:
        state = self._state
        if not isinstance(state, Active):
            return False
        # Idle from here on, even if stop() raises.
        self._state = Idle()
        logger.info("Stopping link to %s", format_address(state.host_address))
        try:
            await state.link.stop()
        except Exception as e:
            logger.error("Link to %s failed to stop: %s", format_address(state.host_address), e)
            raise LinkTeardownError(f"Link to {format_address(state.host_address)} failed to stop: {e}") from e
        return True
