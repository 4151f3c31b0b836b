"""Connection settings for the RCON client.

RconConfig is immutable. Build variations with with_overrides() rather
than mutating a shared instance:

    base = RconConfig(host="mc.example.com", password="secret")
    fast = base.with_overrides(timeout=500)

Timeouts are given in milliseconds, matching how RCON tools usually
express them; timeout_seconds converts for asyncio.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Mapping

from rcon_lite.protocol.packet import HEADER_SIZE, MAX_FRAME_SIZE, MIN_PACKET_LENGTH

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 25575
DEFAULT_TIMEOUT_MS = 2000
DEFAULT_MAX_PENDING = 1


@dataclass(frozen=True, slots=True)
class RconConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    password: str = ""
    timeout: int = DEFAULT_TIMEOUT_MS
    max_pending: int = DEFAULT_MAX_PENDING
    max_frame_size: int = MAX_FRAME_SIZE

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError(f"port must be in 1..65535, got {self.port}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.max_pending < 1:
            raise ValueError(f"max_pending must be at least 1, got {self.max_pending}")
        if self.max_frame_size < HEADER_SIZE + MIN_PACKET_LENGTH:
            raise ValueError(f"max_frame_size {self.max_frame_size} cannot hold a packet")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000

    def with_overrides(self, **overrides: Any) -> RconConfig:
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        prefix: str = "RCON_",
    ) -> RconConfig:
        """Build a config from RCON_HOST, RCON_PORT, RCON_PASSWORD,
        RCON_TIMEOUT and RCON_MAX_PENDING. Unset variables keep defaults.
        """
        env = os.environ if environ is None else environ
        fields: dict[str, Any] = {}
        if f"{prefix}HOST" in env:
            fields["host"] = env[f"{prefix}HOST"]
        if f"{prefix}PASSWORD" in env:
            fields["password"] = env[f"{prefix}PASSWORD"]
        for name in ("port", "timeout", "max_pending"):
            key = f"{prefix}{name.upper()}"
            if key in env:
                try:
                    fields[name] = int(env[key])
                except ValueError:
                    raise ValueError(f"{key} must be an integer, got {env[key]!r}") from None
        return cls(**fields)
