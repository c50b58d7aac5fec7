"""
Link status reporting model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class PeerStatus:
    """Status of one sub-peer (dummy peer) kept alive by the link."""

    remote_address: str
    local_address: str
    delay: float
    last_active: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "remote_address": self.remote_address,
            "local_address": self.local_address,
            "delay": self.delay,
            "last_active": self.last_active,
        }


@dataclass(frozen=True)
class LinkStatus:
    """Snapshot of the relayed link.

    When no link is established every field is zeroed rather than None,
    so callers only need to look at ``established``.
    """

    established: bool = False
    local_address: str = ""
    delay: float = 0.0
    delay_delta: float = 0.0
    peers: tuple[PeerStatus, ...] = field(default_factory=tuple)

    @classmethod
    def idle(cls) -> LinkStatus:
        return cls()

    @classmethod
    def from_link(cls, link: Any) -> LinkStatus:
        """Read the status fields off an active data link."""
        peers = tuple(
            PeerStatus(
                remote_address=str(peer.remote_address),
                local_address=str(peer.local_address),
                delay=float(peer.delay),
                last_active=float(peer.last_active),
            )
            for peer in link.peers
        )
        return cls(
            established=True,
            local_address=str(link.local_address),
            delay=float(link.delay),
            delay_delta=float(link.delay_delta),
            peers=peers,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "established": self.established,
            "local_address": self.local_address,
            "delay": self.delay,
            "delay_delta": self.delay_delta,
            "peers": [peer.to_dict() for peer in self.peers],
        }
