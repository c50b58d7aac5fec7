"""
Relay client - picks a shard and keeps one relayed link to it.

Ties the pieces together under the control channel's connection state:

1. ``refresh_shards`` lists shards over the control channel, probes
   their round-trip times and stores them ranked.
2. ``request_relay`` negotiates a relay through a known shard and hands
   the negotiated host address to the link supervisor.

Nothing that needs the control channel blocks or retries while it is
down; it returns empty results or error sentinels instead.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, NamedTuple

from .config import ClientConfig
from .directory import Endpoint, EndpointDirectory
from .errors import (
    ERROR_SHARD_NOT_FOUND,
    ERROR_UNCONNECTED,
    ProbeError,
    is_error_address,
)
from .link import LinkFactory, LinkStatus, LinkSupervisor, TransportKind
from .prober import LatencyProber
from .tunnel import ControlChannel

logger = logging.getLogger(__name__)


class RelayAddresses(NamedTuple):
    """Result of a relay request: negotiated host and guest addresses.

    Either slot may hold an error sentinel instead of an address.
    """

    host: str
    guest: str

    @property
    def failed(self) -> bool:
        return is_error_address(self.host) or is_error_address(self.guest)

    @classmethod
    def error(cls, sentinel: str) -> RelayAddresses:
        return cls(sentinel, sentinel)


@dataclass(frozen=True)
class ClientStatus:
    """Connectivity summary."""

    connected: bool

    def to_dict(self) -> dict[str, Any]:
        return {"connected": self.connected}


class RelayClient:
    """Client-side decision layer for relayed connectivity.

    Usage::

        client = RelayClient(tunnel, {TransportKind.UDP: UDPLink})
        await client.start()

        shards = await client.refresh_shards()
        host, guest = await client.request_relay(shards[0].address, "udp")
    """

    def __init__(
        self,
        tunnel: ControlChannel,
        link_factories: Mapping[TransportKind, LinkFactory],
        config: ClientConfig | None = None,
        *,
        prober: LatencyProber | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._tunnel = tunnel
        self._connected = False
        self._directory = EndpointDirectory()
        self._prober = prober or LatencyProber(
            window=self._config.probe_window,
            repeat=self._config.probe_repeat,
            bind_host=self._config.probe_bind_host,
        )
        self._links = LinkSupervisor(link_factories, owner=self)

        tunnel.on_connected.subscribe(self._handle_connected)
        tunnel.on_disconnected.subscribe(self._handle_disconnected)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def connected(self) -> bool:
        """Whether the control channel is currently up."""
        return self._connected

    @property
    def shards(self) -> list[Endpoint]:
        """Shards from the last refresh, best first (copies)."""
        return self._directory.endpoints

    @property
    def links(self) -> LinkSupervisor:
        return self._links

    async def start(self) -> None:
        await self._tunnel.start()

    async def stop(self) -> None:
        """Tear down the link and stop listening to the control channel."""
        try:
            await self._links.teardown()
        finally:
            self._tunnel.on_connected.unsubscribe(self._handle_connected)
            self._tunnel.on_disconnected.unsubscribe(self._handle_disconnected)

    def get_status(self) -> ClientStatus:
        return ClientStatus(connected=self._connected)

    def get_connection_status(self) -> LinkStatus:
        return self._links.status()

    async def refresh_shards(self) -> list[Endpoint]:
        """List, probe and rank the current shards.

        Returns an empty list without touching the network while the
        control channel is down. Calls must not overlap.
        """
        if not self._connected:
            return []

        listing = await self._tunnel.list_shards() or []
        endpoints = []
        for entry in listing:
            try:
                endpoints.append(Endpoint.from_dict(entry))
            except ValueError as e:
                logger.warning("Skipping shard entry %r: %s", entry, e)

        # Fresh endpoints are unmeasured; a silent shard stays that way.
        for endpoint in endpoints:
            endpoint.rtt_ms = None

        try:
            endpoints = await self._prober.probe(endpoints)
        except ProbeError as e:
            logger.error("Probe round aborted, keeping shards unmeasured: %s", e)

        ranked = self._directory.refresh(endpoints)
        logger.info("Refreshed %d shards", len(ranked))
        return ranked

    async def request_relay(self, shard_address: str, transport: str) -> RelayAddresses:
        """Negotiate a relay through ``shard_address`` and link to it.

        Returns:
            The negotiated ``(host, guest)`` pair, or a pair of
            ``ERROR_UNCONNECTED`` / ``ERROR_SHARD_NOT_FOUND`` sentinels.
            A pair reported as failed by the control channel is passed
            through unchanged and no link is made.

        Raises:
            UnsupportedTransportError: For transports with no link implementation.
            LinkEstablishError: If the negotiated host can't be linked to.
            LinkTeardownError: If the previous link fails to stop.
        """
        if not self._connected:
            return RelayAddresses.error(ERROR_UNCONNECTED)

        kind = self._links.resolve_transport(transport)

        shard = self._directory.find_by_address(shard_address)
        if shard is None:
            logger.warning("Relay requested through unknown shard %s", shard_address)
            return RelayAddresses.error(ERROR_SHARD_NOT_FOUND)

        host, guest = await self._tunnel.negotiate_relay(shard.address, kind.value)
        result = RelayAddresses(host, guest)

        if result.failed:
            logger.warning(
                "Relay negotiation through %s failed: host=%s guest=%s",
                shard.address,
                host,
                guest,
            )
            return result

        await self._links.establish(shard.address, host, kind)
        return result

    def _handle_connected(self) -> None:
        logger.info("Control channel connected")
        self._connected = True

    def _handle_disconnected(self) -> None:
        logger.info("Control channel disconnected")
        self._connected = False
