"""
Relayed link lifecycle.

- transport.py: TransportKind, the DataLink capability, LinkFactory
- status.py: LinkStatus, PeerStatus
- supervisor.py: LinkSupervisor and its Idle/Active states
"""

from .status import LinkStatus, PeerStatus
from .supervisor import Active, Idle, LinkState, LinkSupervisor
from .transport import DataLink, LinkFactory, SubPeer, TransportKind

__all__ = [
    "LinkSupervisor",
    "LinkState",
    "Idle",
    "Active",
    # Status
    "LinkStatus",
    "PeerStatus",
    # Transports
    "TransportKind",
    "DataLink",
    "SubPeer",
    "LinkFactory",
]
