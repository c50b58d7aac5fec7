"""
Endpoint directory - the last known set of candidate shards.

Holds the shards returned by the most recent refresh, ranked by measured
round-trip time. Everything handed out is a copy; callers never hold a
live reference into the directory.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class Endpoint:
    """A candidate shard the client may relay through.

    ``rtt_ms`` is the mean measured round-trip time in milliseconds, or
    ``None`` while the endpoint is unmeasured. Zero is a real measurement,
    never a placeholder.
    """

    #: ``host:port`` of the shard; identity of the endpoint.
    address: str

    #: Mean round-trip time in milliseconds (None = unmeasured).
    rtt_ms: float | None = None

    #: Any other fields the control channel reported for the shard.
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_measured(self) -> bool:
        return self.rtt_ms is not None

    def copy(self) -> Endpoint:
        return replace(self, metadata=dict(self.metadata))

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "rtt_ms": round(self.rtt_ms, 3) if self.rtt_ms is not None else None,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Endpoint:
        """Build an endpoint from a shard listing entry.

        Accepts ``address`` or the control channel's shorter ``addr`` key.
        Unrecognised keys are kept in ``metadata``.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"shard entry is not a mapping: {type(data).__name__}")
        address = data.get("address", data.get("addr"))
        if not address:
            raise ValueError("shard entry has no address")
        metadata_in = data.get("metadata") or {}
        if not isinstance(metadata_in, Mapping):
            raise ValueError(f"shard metadata is not a mapping: {type(metadata_in).__name__}")
        rtt = data.get("rtt_ms")
        try:
            rtt_ms = float(rtt) if rtt is not None else None
        except (TypeError, ValueError):
            raise ValueError(f"invalid rtt_ms {rtt!r}") from None
        metadata = dict(metadata_in)
        for key, value in data.items():
            if key not in ("address", "addr", "rtt_ms", "metadata"):
                metadata[key] = value
        return cls(
            address=str(address),
            rtt_ms=rtt_ms,
            metadata=metadata,
        )


def _rank_key(endpoint: Endpoint) -> tuple[bool, float]:
    # Unmeasured endpoints go after every measured one.
    if endpoint.rtt_ms is None:
        return (True, 0.0)
    return (False, endpoint.rtt_ms)


def rank_endpoints(endpoints: Iterable[Endpoint]) -> list[Endpoint]:
    """Order endpoints by ascending round-trip time.

    The sort is stable: ties, and unmeasured endpoints among themselves,
    keep their original order.
    """
    return sorted(endpoints, key=_rank_key)


class EndpointDirectory:
    """Ranked store of the most recently refreshed shards.

    Usage::

        directory = EndpointDirectory()
        ranked = directory.refresh(probed_endpoints)
        shard = directory.find_by_address("203.0.113.7:31337")
    """

    def __init__(self) -> None:
        self._endpoints: list[Endpoint] = []

    def __len__(self) -> int:
        return len(self._endpoints)

    @property
    def endpoints(self) -> list[Endpoint]:
        """Copies of the stored endpoints, best first."""
        return [e.copy() for e in self._endpoints]

    def refresh(self, endpoints: Iterable[Endpoint]) -> list[Endpoint]:
        """Replace the directory contents with ``endpoints``, ranked.

        Returns:
            Copies of the ranked endpoints.
        """
        self._endpoints = [e.copy() for e in rank_endpoints(endpoints)]
        measured = sum(1 for e in self._endpoints if e.is_measured)
        logger.debug(
            "Directory refreshed: %d shards (%d measured)",
            len(self._endpoints),
            measured,
        )
        return self.endpoints

    def find_by_address(self, address: str) -> Endpoint | None:
        """Look up a shard by address.

        Returns:
            A copy of the endpoint, or None if it is not in the directory.
        """
        for endpoint in self._endpoints:
            if endpoint.address == address:
                return endpoint.copy()
        return None

    def clear(self) -> None:
        self._endpoints = []
