"""
Configuration for the relay client.

Defaults mirror the public holder endpoints and the probe parameters the
client has always used. Values can be loaded from a dictionary (e.g. a
parsed JSON file) or from ``SHARD_RELAY_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from typing import Any

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_HOLDER_ADDRESS = "shitama.tldr.run:31337"
DEFAULT_HOLDER_ADDRESS_ALT = "115.159.87.170:31337"

#: Collection window of a probe round, in seconds.
DEFAULT_PROBE_WINDOW = 1.0

#: Copies of the probe payload sent to every endpoint per round.
DEFAULT_PROBE_REPEAT = 16

DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 61337

ENV_PREFIX = "SHARD_RELAY_"


@dataclass
class ClientConfig:
    """Runtime settings for :class:`~shard_relay.client.RelayClient`."""

    #: Control-channel endpoints. Not read by the client itself; passed
    #: through to whatever ControlChannel implementation is in use.
    holder_address: str = DEFAULT_HOLDER_ADDRESS
    holder_address_alt: str = DEFAULT_HOLDER_ADDRESS_ALT
    probe_window: float = DEFAULT_PROBE_WINDOW
    probe_repeat: int = DEFAULT_PROBE_REPEAT
    probe_bind_host: str = "0.0.0.0"
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT

    def __post_init__(self) -> None:
        for name in ("holder_address", "holder_address_alt", "probe_bind_host", "api_host"):
            if not isinstance(getattr(self, name), str):
                raise ConfigError(f"{name} must be a string, got {getattr(self, name)!r}")
        # bool is an int subclass; reject it explicitly.
        if isinstance(self.probe_window, bool) or not isinstance(self.probe_window, (int, float)):
            raise ConfigError(f"probe_window must be a number, got {self.probe_window!r}")
        for name in ("probe_repeat", "api_port"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
        if self.probe_window <= 0:
            raise ConfigError(f"probe_window must be positive, got {self.probe_window}")
        if self.probe_repeat < 1:
            raise ConfigError(f"probe_repeat must be at least 1, got {self.probe_repeat}")
        if not 0 <= self.api_port <= 65535:
            raise ConfigError(f"api_port out of range: {self.api_port}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ClientConfig:
        # Filter to known fields so older/newer config files still load.
        known = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in known}
        ignored = set(data) - known
        if ignored:
            logger.debug("Ignoring unknown config keys: %s", ", ".join(sorted(ignored)))
        return cls(**filtered)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """Build a config from ``SHARD_RELAY_<FIELD>`` environment variables."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            try:
                if f.type == "float":
                    values[f.name] = float(raw)
                elif f.type == "int":
                    values[f.name] = int(raw)
                else:
                    values[f.name] = raw
            except ValueError as e:
                raise ConfigError(f"Invalid value for {ENV_PREFIX + f.name.upper()}: {raw!r}") from e
        return cls(**values)
