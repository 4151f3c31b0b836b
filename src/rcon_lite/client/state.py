"""Connection lifecycle states and the notifications published on them.

State transitions:
    DISCONNECTED → CONNECTING → AUTHENTICATING → READY → CLOSING → CLOSED
                        ↘ DISCONNECTED  ↘ DISCONNECTED  ↘ DISCONNECTED
    CLOSED → CONNECTING (reconnect)

Any unexpected socket close or error drops the connection to
DISCONNECTED from wherever it is (except the states where no socket
exists yet).
"""
from __future__ import annotations

from enum import Enum, auto


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    AUTHENTICATING = auto()
    READY = auto()
    CLOSING = auto()
    CLOSED = auto()


class ConnectionEvent(Enum):
    CONNECT = "connect"
    AUTHENTICATED = "authenticated"
    END = "end"
    ERROR = "error"


VALID_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.AUTHENTICATING, ConnectionState.DISCONNECTED},
    ConnectionState.AUTHENTICATING: {
        ConnectionState.READY,
        ConnectionState.CLOSING,
        ConnectionState.DISCONNECTED,
    },
    ConnectionState.READY: {ConnectionState.CLOSING, ConnectionState.DISCONNECTED},
    ConnectionState.CLOSING: {ConnectionState.CLOSED, ConnectionState.DISCONNECTED},
    ConnectionState.CLOSED: {ConnectionState.CONNECTING},
}

# States in which connect() may be called.
IDLE_STATES = frozenset({ConnectionState.DISCONNECTED, ConnectionState.CLOSED})
