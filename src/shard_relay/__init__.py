"""
Shard Relay - client-side shard selection and relayed link management.

Measures round-trip time to candidate shards, ranks them, and keeps a
single relayed data link to the chosen one.

Submodules:
- config.py: ClientConfig
- errors.py: exceptions and error sentinels
- directory.py: Endpoint, EndpointDirectory, rank_endpoints
- prober.py: LatencyProber
- tunnel.py: ControlChannel capability, EventHook
- link/: LinkSupervisor and link status
- client.py: RelayClient
- api.py: local HTTP status surface
"""

__version__ = "0.1.0"

from shard_relay.client import ClientStatus, RelayAddresses, RelayClient
from shard_relay.config import ClientConfig
from shard_relay.directory import Endpoint, EndpointDirectory, rank_endpoints
from shard_relay.errors import (
    ERROR_SHARD_NOT_FOUND,
    ERROR_UNCONNECTED,
    ConfigError,
    LinkError,
    LinkEstablishError,
    LinkTeardownError,
    ProbeError,
    RelayClientError,
    UnsupportedTransportError,
    is_error_address,
)
from shard_relay.link import (
    Active,
    DataLink,
    Idle,
    LinkFactory,
    LinkStatus,
    LinkSupervisor,
    PeerStatus,
    TransportKind,
)
from shard_relay.prober import LatencyProber, ProbeSample
from shard_relay.tunnel import ControlChannel, EventHook

__all__ = [
    "__version__",
    # Client
    "RelayClient",
    "RelayAddresses",
    "ClientStatus",
    "ClientConfig",
    # Directory
    "Endpoint",
    "EndpointDirectory",
    "rank_endpoints",
    # Probing
    "LatencyProber",
    "ProbeSample",
    # Control channel
    "ControlChannel",
    "EventHook",
    # Link
    "LinkSupervisor",
    "LinkStatus",
    "PeerStatus",
    "TransportKind",
    "DataLink",
    "LinkFactory",
    "Idle",
    "Active",
    # Errors
    "RelayClientError",
    "ConfigError",
    "ProbeError",
    "LinkError",
    "LinkEstablishError",
    "LinkTeardownError",
    "UnsupportedTransportError",
    "ERROR_UNCONNECTED",
    "ERROR_SHARD_NOT_FOUND",
    "is_error_address",
]
