"""
Relay client exceptions and error sentinels.
"""

#: Returned in both slots of a relay request while the control channel is down.
ERROR_UNCONNECTED = "ERROR_UNCONNECTED"

#: Returned in both slots of a relay request for a shard missing from the directory.
ERROR_SHARD_NOT_FOUND = "ERROR_SHARD_NOT_FOUND"


def is_error_address(address: str) -> bool:
    """Check whether a negotiated address carries an error sentinel."""
    return "ERROR" in address


class RelayClientError(Exception):
    """Base exception for relay client errors."""

    pass


class ConfigError(RelayClientError):
    """Raised when configuration values are invalid."""

    pass


class ProbeError(RelayClientError):
    """Raised when a probe round cannot run (e.g. the probe socket won't open)."""

    pass


class LinkError(RelayClientError):
    """Base exception for link lifecycle errors."""

    pass


class LinkEstablishError(LinkError):
    """Raised when a relayed link cannot be established."""

    pass


class UnsupportedTransportError(LinkError):
    """Raised when a transport kind has no link implementation."""

    pass


class LinkTeardownError(LinkError):
    """Raised when the current link fails to stop."""

    pass
