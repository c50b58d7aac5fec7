"""
Parsing and resolution of ``host:port`` endpoint addresses (IPv4/UDP).
"""

from __future__ import annotations

import asyncio
import socket

#: Resolved IPv4 socket address.
SocketAddress = tuple[str, int]


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts.

    Raises:
        ValueError: If the port is missing or not a valid port number.
    """
    host, sep, port_str = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"missing port in address {address!r}")
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"invalid port in address {address!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range in address {address!r}")
    return host, port


def format_address(addr: SocketAddress) -> str:
    return f"{addr[0]}:{addr[1]}"


async def resolve_udp_address(address: str) -> SocketAddress:
    """Resolve ``host:port`` to an IPv4 UDP socket address.

    Raises:
        ValueError: If the address is malformed.
        OSError: If name resolution fails.
    """
    host, port = parse_address(address)
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, family=socket.AF_INET, type=socket.SOCK_DGRAM)
    if not infos:
        raise OSError(f"no IPv4 address for {address!r}")
    ip, resolved_port = infos[0][4][:2]
    return ip, resolved_port
