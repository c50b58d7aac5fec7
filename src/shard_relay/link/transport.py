"""
Data-plane link capability and the transports the client can drive.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import Any, Protocol

from ..addressing import SocketAddress
from ..errors import UnsupportedTransportError


class TransportKind(StrEnum):
    """Transports a relayed link can run over."""

    UDP = "udp"

    @classmethod
    def parse(cls, value: str | TransportKind) -> TransportKind:
        """Validate a transport name.

        Raises:
            UnsupportedTransportError: For names outside this enum.
        """
        try:
            return cls(value)
        except ValueError:
            supported = ", ".join(kind.value for kind in cls)
            raise UnsupportedTransportError(
                f"Unsupported transport {value!r} (supported: {supported})"
            ) from None


class SubPeer(Protocol):
    remote_address: Any
    local_address: Any
    delay: float
    last_active: float


class DataLink(Protocol):
    """A relayed data link, implemented outside this package.

    The link keeps its own sub-peers (NAT traversal helpers) and does the
    forwarding; the supervisor only starts it, stops it and reads status.
    """

    @property
    def local_address(self) -> Any: ...

    @property
    def delay(self) -> float: ...

    @property
    def delay_delta(self) -> float: ...

    @property
    def peers(self) -> Sequence[SubPeer]: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


#: Builds a link from ``(owner, shard_address, host_address)``.
#: ``shard_address`` is None when the shard address did not resolve.
LinkFactory = Callable[[Any, SocketAddress | None, SocketAddress], DataLink]
