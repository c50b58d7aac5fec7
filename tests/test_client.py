"""Tests for the RelayClient facade.

Covers:
- Connection state driven by control channel events
- Shard refresh (gating, ranking, probe failures)
- Relay requests (sentinels, negotiation, link establishment)
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from shard_relay.client import ClientStatus, RelayAddresses, RelayClient
from shard_relay.config import ClientConfig
from shard_relay.errors import (
    ERROR_SHARD_NOT_FOUND,
    ERROR_UNCONNECTED,
    LinkEstablishError,
    LinkTeardownError,
    ProbeError,
    UnsupportedTransportError,
)
from shard_relay.link import LinkStatus, TransportKind
from shard_relay.prober import LatencyProber

# =============================================================================
# Connection state
# =============================================================================


class TestConnectionState:
    """Tests for the connected flag."""

    def test_starts_disconnected(self, client) -> None:
        assert client.connected is False
        assert client.get_status() == ClientStatus(connected=False)

    def test_events_flip_flag(self, client, tunnel) -> None:
        tunnel.on_connected.emit()
        assert client.connected is True
        assert client.get_status().to_dict() == {"connected": True}

        tunnel.on_disconnected.emit()
        assert client.connected is False

    def test_handlers_idempotent(self, client, tunnel) -> None:
        tunnel.on_connected.emit()
        tunnel.on_connected.emit()
        assert client.connected is True
        tunnel.on_disconnected.emit()
        tunnel.on_disconnected.emit()
        assert client.connected is False

    def test_default_prober_uses_config(self, tunnel, link_factory) -> None:
        config = ClientConfig(probe_window=0.5, probe_repeat=4)
        client = RelayClient(tunnel, {TransportKind.UDP: link_factory}, config)
        assert client.config is config
        assert isinstance(client._prober, LatencyProber)
        assert client._prober.window == 0.5

    @pytest.mark.asyncio
    async def test_start_starts_tunnel(self, client, tunnel) -> None:
        await client.start()
        tunnel.start.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop(self, client, tunnel, created_links) -> None:
        tunnel.on_connected.emit()
        await client.refresh_shards()
        await client.request_relay("127.0.0.1:31001", "udp")

        await client.stop()

        assert created_links[0].stopped
        assert len(tunnel.on_connected) == 0
        assert len(tunnel.on_disconnected) == 0
        tunnel.on_disconnected.emit()
        assert client.connected is True

    @pytest.mark.asyncio
    async def test_stop_unsubscribes_when_teardown_fails(self, client, tunnel, created_links) -> None:
        tunnel.on_connected.emit()
        await client.refresh_shards()
        await client.request_relay("127.0.0.1:31001", "udp")
        created_links[0].stop = AsyncMock(side_effect=OSError("gone"))

        with pytest.raises(LinkTeardownError):
            await client.stop()

        assert len(tunnel.on_connected) == 0
        assert len(tunnel.on_disconnected) == 0


# =============================================================================
# Shard refresh
# =============================================================================


class TestRefreshShards:
    """Tests for refresh_shards."""

    @pytest.mark.asyncio
    async def test_disconnected_returns_empty(self, client, tunnel, stub_prober) -> None:
        assert await client.refresh_shards() == []
        tunnel.list_shards.assert_not_awaited()
        stub_prober.probe.assert_not_called()

    @pytest.mark.asyncio
    async def test_ranked_by_rtt(self, client, tunnel, stub_prober) -> None:
        stub_prober.rtts = {"127.0.0.1:31001": 10.0, "127.0.0.1:31002": 5.0}
        tunnel.on_connected.emit()

        shards = await client.refresh_shards()

        assert [s.address for s in shards] == ["127.0.0.1:31002", "127.0.0.1:31001"]
        assert [s.rtt_ms for s in shards] == [5.0, 10.0]
        assert shards[0].metadata == {"name": "beta"}
        assert [s.address for s in client.shards] == ["127.0.0.1:31002", "127.0.0.1:31001"]

    @pytest.mark.asyncio
    async def test_fresh_shards_start_unmeasured(self, client, tunnel, stub_prober) -> None:
        """A listed rtt must not survive into a round where the shard is silent."""
        tunnel.list_shards.return_value = [{"addr": "127.0.0.1:31001", "rtt_ms": 1.0}]
        tunnel.on_connected.emit()

        [shard] = await client.refresh_shards()

        assert shard.rtt_ms is None

    @pytest.mark.asyncio
    async def test_none_listing(self, client, tunnel) -> None:
        tunnel.list_shards.return_value = None
        tunnel.on_connected.emit()
        assert await client.refresh_shards() == []

    @pytest.mark.asyncio
    async def test_bad_entries_skipped(self, client, tunnel) -> None:
        tunnel.list_shards.return_value = [{"name": "no address"}, {"addr": "127.0.0.1:31001"}]
        tunnel.on_connected.emit()
        shards = await client.refresh_shards()
        assert [s.address for s in shards] == ["127.0.0.1:31001"]

    @pytest.mark.asyncio
    async def test_malformed_entries_isolated(self, client, tunnel) -> None:
        """One broken listing entry must not abort the refresh."""
        tunnel.list_shards.return_value = [
            {"addr": "127.0.0.1:31001", "metadata": 5},
            "127.0.0.1:31003",
            {"addr": "127.0.0.1:31004", "rtt_ms": [1.0]},
            {"addr": "127.0.0.1:31002"},
        ]
        tunnel.on_connected.emit()

        shards = await client.refresh_shards()

        assert [s.address for s in shards] == ["127.0.0.1:31002"]

    @pytest.mark.asyncio
    async def test_probe_error_keeps_listing(self, client, tunnel, stub_prober) -> None:
        stub_prober.probe.side_effect = ProbeError("no socket")
        tunnel.on_connected.emit()

        shards = await client.refresh_shards()

        assert [s.address for s in shards] == ["127.0.0.1:31001", "127.0.0.1:31002"]
        assert all(s.rtt_ms is None for s in shards)


# =============================================================================
# Relay requests
# =============================================================================


class TestRequestRelay:
    """Tests for request_relay."""

    @pytest.mark.asyncio
    async def test_disconnected(self, client, tunnel, stub_prober, created_links) -> None:
        result = await client.request_relay("127.0.0.1:31001", "udp")

        assert result == (ERROR_UNCONNECTED, ERROR_UNCONNECTED)
        assert result.failed
        tunnel.negotiate_relay.assert_not_awaited()
        stub_prober.probe.assert_not_called()
        assert created_links == []

    @pytest.mark.asyncio
    async def test_unknown_shard(self, client, tunnel) -> None:
        tunnel.on_connected.emit()
        await client.refresh_shards()

        result = await client.request_relay("127.0.0.1:39999", "udp")

        assert result == RelayAddresses.error(ERROR_SHARD_NOT_FOUND)
        tunnel.negotiate_relay.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_success_establishes_link(self, client, tunnel, created_links) -> None:
        tunnel.on_connected.emit()
        await client.refresh_shards()

        host, guest = await client.request_relay("127.0.0.1:31001", "udp")

        assert (host, guest) == ("127.0.0.1:40000", "127.0.0.1:40001")
        tunnel.negotiate_relay.assert_awaited_once_with("127.0.0.1:31001", "udp")
        [link] = created_links
        assert link.owner is client
        assert link.host_address == ("127.0.0.1", 40000)
        status = client.get_connection_status()
        assert status.established is True
        assert status.local_address == "0.0.0.0:50000"

    @pytest.mark.asyncio
    async def test_negotiation_failure_skips_link(self, client, tunnel, created_links) -> None:
        tunnel.negotiate_relay.return_value = ("ERROR_NO_CAPACITY", "ERROR_NO_CAPACITY")
        tunnel.on_connected.emit()
        await client.refresh_shards()

        result = await client.request_relay("127.0.0.1:31001", "udp")

        assert result == ("ERROR_NO_CAPACITY", "ERROR_NO_CAPACITY")
        assert created_links == []
        assert client.get_connection_status() == LinkStatus.idle()

    @pytest.mark.asyncio
    async def test_guest_error_alone_skips_link(self, client, tunnel, created_links) -> None:
        tunnel.negotiate_relay.return_value = ("127.0.0.1:40000", "ERROR_GUEST")
        tunnel.on_connected.emit()
        await client.refresh_shards()

        result = await client.request_relay("127.0.0.1:31001", "udp")

        assert result.failed
        assert created_links == []

    @pytest.mark.asyncio
    async def test_second_relay_replaces_link(self, client, tunnel, created_links, link_events) -> None:
        tunnel.on_connected.emit()
        await client.refresh_shards()
        await client.request_relay("127.0.0.1:31001", "udp")

        tunnel.negotiate_relay.return_value = ("127.0.0.1:40010", "127.0.0.1:40011")
        await client.request_relay("127.0.0.1:31002", "udp")

        first, second = created_links
        assert first.stopped and not second.stopped
        assert link_events[-2:] == [("stop", ("127.0.0.1", 40000)), ("start", ("127.0.0.1", 40010))]

    @pytest.mark.asyncio
    async def test_unsupported_transport(self, client, tunnel) -> None:
        tunnel.on_connected.emit()
        await client.refresh_shards()

        with pytest.raises(UnsupportedTransportError):
            await client.request_relay("127.0.0.1:31001", "carrier-pigeon")

        tunnel.negotiate_relay.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unresolvable_host_raises(self, client, tunnel) -> None:
        tunnel.negotiate_relay.return_value = ("garbage", "127.0.0.1:40001")
        tunnel.on_connected.emit()
        await client.refresh_shards()

        with pytest.raises(LinkEstablishError):
            await client.request_relay("127.0.0.1:31001", "udp")

    @pytest.mark.asyncio
    async def test_disconnect_after_refresh_blocks_relay(self, client, tunnel) -> None:
        tunnel.on_connected.emit()
        await client.refresh_shards()
        tunnel.on_disconnected.emit()

        result = await client.request_relay("127.0.0.1:31001", "udp")

        assert result == RelayAddresses.error(ERROR_UNCONNECTED)
        tunnel.negotiate_relay.assert_not_awaited()


def test_relay_addresses_unpacks_as_pair() -> None:
    host, guest = RelayAddresses("a:1", "b:2")
    assert (host, guest) == ("a:1", "b:2")
    assert RelayAddresses("a:1", "b:2").failed is False
