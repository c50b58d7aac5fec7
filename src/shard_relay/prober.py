"""
Round-trip time probing for candidate shards.

A probe round opens one ephemeral UDP socket, sends the same 8-byte
timestamp payload to every candidate several times in a burst, and
collects echoed replies for a single fixed window. Each shard's
round-trip time is the mean of the elapsed times observed for it.

All addresses are resolved before the payload is stamped, so name
resolution never inflates a measurement. The collection window starts
once the send burst is done.

Wire format: exactly 8 bytes, the sender's wall-clock time in
nanoseconds, big-endian. Shards echo it back verbatim.

The figure reported is the full round trip; it is not halved.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import struct
import time
from collections.abc import Sequence
from dataclasses import dataclass

from .addressing import SocketAddress, format_address, resolve_udp_address
from .config import DEFAULT_PROBE_REPEAT, DEFAULT_PROBE_WINDOW
from .directory import Endpoint
from .errors import ProbeError

logger = logging.getLogger(__name__)

PROBE_PAYLOAD = struct.Struct(">Q")

NANOS_PER_MILLI = 1_000_000


@dataclass(frozen=True)
class ProbeSample:
    """One echoed probe: which endpoint replied and how long it took."""

    endpoint_key: str
    elapsed_ns: int


def encode_probe(timestamp_ns: int) -> bytes:
    return PROBE_PAYLOAD.pack(timestamp_ns & 0xFFFFFFFFFFFFFFFF)


def decode_probe(data: bytes) -> int:
    """Extract the timestamp from an echoed probe.

    Raises:
        ValueError: If the datagram is not a probe payload.
    """
    if len(data) != PROBE_PAYLOAD.size:
        raise ValueError(f"expected {PROBE_PAYLOAD.size} bytes, got {len(data)}")
    return PROBE_PAYLOAD.unpack(data)[0]


def mean_rtt_ms(elapsed_ns: Sequence[int]) -> float:
    """Arithmetic mean of elapsed times, converted from ns to ms."""
    if not elapsed_ns:
        raise ValueError("no samples")
    return sum(elapsed_ns) / NANOS_PER_MILLI / len(elapsed_ns)


class _ProbeReplyProtocol(asyncio.DatagramProtocol):
    """Background reader for one probe round.

    Turns echoed datagrams into :class:`ProbeSample` items on ``queue``.
    ``None`` is queued once the socket is gone so the collector stops.
    """

    def __init__(
        self,
        targets: dict[SocketAddress, list[str]],
        queue: asyncio.Queue[ProbeSample | None],
    ) -> None:
        self._targets = targets
        self._queue = queue

    def datagram_received(self, data: bytes, addr: tuple) -> None:
        now = time.time_ns()
        keys = self._targets.get((addr[0], addr[1]))
        if keys is None:
            logger.debug("Dropping datagram from unknown sender %s:%s", addr[0], addr[1])
            return
        try:
            then = decode_probe(data)
        except ValueError as e:
            logger.debug("Dropping malformed probe reply from %s:%s: %s", addr[0], addr[1], e)
            return
        elapsed = now - then
        if elapsed < 0:
            logger.debug("Dropping probe reply from the future (%d ns)", elapsed)
            return
        for key in keys:
            self._queue.put_nowait(ProbeSample(endpoint_key=key, elapsed_ns=elapsed))

    def error_received(self, exc: Exception) -> None:
        logger.warning("Probe socket error: %s", exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            logger.warning("Probe socket closed: %s", exc)
        self._queue.put_nowait(None)


class LatencyProber:
    """Measures round-trip time to a set of endpoints.

    Usage::

        prober = LatencyProber()
        measured = await prober.probe(endpoints)

    Endpoints that do not answer within the window keep whatever
    ``rtt_ms`` they came in with; pass them in unmeasured (``None``) to
    avoid carrying stale figures between rounds.
    """

    def __init__(
        self,
        *,
        window: float = DEFAULT_PROBE_WINDOW,
        repeat: int = DEFAULT_PROBE_REPEAT,
        bind_host: str = "0.0.0.0",
    ) -> None:
        self._window = window
        self._repeat = repeat
        self._bind_host = bind_host

    @property
    def window(self) -> float:
        return self._window

    async def probe(
        self,
        endpoints: Sequence[Endpoint],
        window: float | None = None,
    ) -> list[Endpoint]:
        """Run one probe round and fill in round-trip times.

        Args:
            endpoints: Candidates to measure. They are not modified.
            window: Collection window in seconds (defaults to the prober's).

        Returns:
            Copies of ``endpoints`` in the same order, with ``rtt_ms`` set
            for every endpoint that replied at least once.

        Raises:
            ProbeError: If the probe socket cannot be opened.
        """
        samples = await self.measure([e.address for e in endpoints], window)
        measured = []
        for endpoint in endpoints:
            result = endpoint.copy()
            elapsed = samples.get(endpoint.address)
            if elapsed:
                result.rtt_ms = mean_rtt_ms(elapsed)
            measured.append(result)
        return measured

    async def measure(
        self,
        addresses: Sequence[str],
        window: float | None = None,
    ) -> dict[str, list[int]]:
        """Run one probe round and return raw samples.

        Returns:
            Mapping of endpoint address to the elapsed times (ns) observed
            for it. Addresses with no reply are absent.

        Raises:
            ProbeError: If the probe socket cannot be opened.
        """
        window = self._window if window is None else window
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[ProbeSample | None] = asyncio.Queue()
        targets: dict[SocketAddress, list[str]] = {}

        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _ProbeReplyProtocol(targets, queue),
                local_addr=(self._bind_host, 0),
                family=socket.AF_INET,
            )
        except OSError as e:
            raise ProbeError(f"Cannot open probe socket on {self._bind_host}: {e}") from e

        try:
            for address in dict.fromkeys(addresses):
                try:
                    target = await resolve_udp_address(address)
                except (ValueError, OSError) as e:
                    logger.warning("Cannot resolve shard address %s: %s", address, e)
                    continue
                targets.setdefault(target, []).append(address)

            # Stamped after every lookup has finished.
            payload = encode_probe(time.time_ns())
            for target, keys in targets.items():
                for _ in range(self._repeat):
                    transport.sendto(payload, target)
                logger.debug("Probing %s via %s", ", ".join(keys), format_address(target))
            sent = sum(len(keys) for keys in targets.values())

            samples = await self._collect(queue, loop.time() + window)
        finally:
            transport.close()

        logger.debug(
            "Probe round finished: %d/%d endpoints probed, %d replied",
            sent,
            len(addresses),
            len(samples),
        )
        return samples

    async def _collect(
        self,
        queue: asyncio.Queue[ProbeSample | None],
        deadline: float,
    ) -> dict[str, list[int]]:
        """Drain samples until the reader stops or the deadline passes."""
        loop = asyncio.get_running_loop()
        samples: dict[str, list[int]] = {}
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                sample = await asyncio.wait_for(queue.get(), timeout=remaining)
            except TimeoutError:
                break
            if sample is None:
                break
            samples.setdefault(sample.endpoint_key, []).append(sample.elapsed_ns)
        return samples
