"""
Shared fakes for the control channel and data-plane link.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from shard_relay.client import RelayClient
from shard_relay.directory import Endpoint
from shard_relay.link import TransportKind
from shard_relay.tunnel import EventHook


@dataclass
class FakePeer:
    remote_address: str
    local_address: str
    delay: float
    last_active: float


class FakeLink:
    """Data link that records start/stop into a shared event log."""

    def __init__(self, events: list, owner: Any, shard_address: Any, host_address: Any) -> None:
        self.events = events
        self.owner = owner
        self.shard_address = shard_address
        self.host_address = host_address
        self.local_address = "0.0.0.0:50000"
        self.delay = 12.5
        self.delay_delta = 0.75
        self.peers = [FakePeer("198.51.100.9:7000", "0.0.0.0:50001", 30.0, 1700000000.5)]
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.events.append(("start", self.host_address))
        self.started = True

    async def stop(self) -> None:
        self.events.append(("stop", self.host_address))
        self.stopped = True


class FakeTunnel:
    """Control channel with real event hooks and mocked requests."""

    def __init__(self, shards: list[dict[str, Any]] | None = None) -> None:
        self.on_connected = EventHook("connected")
        self.on_disconnected = EventHook("disconnected")
        self.start = AsyncMock()
        self.list_shards = AsyncMock(return_value=shards if shards is not None else [])
        self.negotiate_relay = AsyncMock(return_value=("127.0.0.1:40000", "127.0.0.1:40001"))


@pytest.fixture
def link_events():
    return []


@pytest.fixture
def created_links():
    return []


@pytest.fixture
def link_factory(link_events, created_links):
    """Factory building FakeLinks that share ``link_events``."""

    def factory(owner, shard_address, host_address):
        link = FakeLink(link_events, owner, shard_address, host_address)
        created_links.append(link)
        return link

    return factory


@pytest.fixture
def tunnel():
    return FakeTunnel(
        shards=[
            {"addr": "127.0.0.1:31001", "name": "alpha"},
            {"addr": "127.0.0.1:31002", "name": "beta"},
        ]
    )


@pytest.fixture
def stub_prober():
    """Prober that reports preset round-trip times instead of probing."""
    prober = MagicMock()
    prober.rtts = {}

    async def probe(endpoints):
        return [
            Endpoint(address=e.address, rtt_ms=prober.rtts.get(e.address, e.rtt_ms), metadata=dict(e.metadata))
            for e in endpoints
        ]

    prober.probe = AsyncMock(side_effect=probe)
    return prober


@pytest.fixture
def client(tunnel, link_factory, stub_prober):
    return RelayClient(tunnel, {TransportKind.UDP: link_factory}, prober=stub_prober)
