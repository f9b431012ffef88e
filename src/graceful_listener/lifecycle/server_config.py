"""
Listener configuration value.

The bind interface and connection timeouts are fixed; callers choose only the
port and the ASGI application that handles requests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

ASGIApp = Callable[[dict, Callable[[], Awaitable[dict]], Callable[[dict], Awaitable[None]]], Awaitable[None]]

WILDCARD_HOST = "0.0.0.0"

READ_TIMEOUT = 5.0
WRITE_TIMEOUT = 5.0
IDLE_TIMEOUT = 5.0

# Bounds the graceful drain after cancellation, measured from the moment the
# cancellation is observed.
SHUTDOWN_TIMEOUT = 10.0

# Extra time granted to the cancelled serve task after a drain deadline.
FORCE_CLOSE_GRACE = 1.0


def join_host_port(host: str, port: Union[str, int]) -> str:
    """Combine host and port into "host:port", bracketing IPv6 literals."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


@dataclass(frozen=True)
class ServerConfig:
    """Immutable settings for one listener."""
    bind_address: str
    handler: Any  # ASGIApp
    read_timeout: float = READ_TIMEOUT
    write_timeout: float = WRITE_TIMEOUT
    idle_timeout: float = IDLE_TIMEOUT

    @classmethod
    def for_port(cls, port: Union[str, int], handler: ASGIApp) -> "ServerConfig":
        """Bind on every interface at ``port`` with the default timeouts."""
        return cls(bind_address=join_host_port(WILDCARD_HOST, port), handler=handler)

    @property
    def host(self) -> str:
        host, _, _ = self.bind_address.rpartition(":")
        return host.strip("[]")

    @property
    def port(self) -> str:
        return self.bind_address.rpartition(":")[2]
