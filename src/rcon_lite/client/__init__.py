"""RCON client: connection state machine, request correlation, send queue.

The pieces, leaves first:
  - PendingRequestTable: request id -> future + timeout timer
  - SendQueue: FIFO admission, at most max_pending requests in flight
  - Rcon: owns the socket, runs the login handshake, wires it together
"""
from rcon_lite.client.connection import Rcon, connect
from rcon_lite.client.pending import PendingRequest, PendingRequestTable
from rcon_lite.client.send_queue import SendQueue
from rcon_lite.client.state import (
    IDLE_STATES,
    VALID_TRANSITIONS,
    ConnectionEvent,
    ConnectionState,
)

__all__ = [
    "Rcon",
    "connect",
    "PendingRequest",
    "PendingRequestTable",
    "SendQueue",
    "IDLE_STATES",
    "VALID_TRANSITIONS",
    "ConnectionEvent",
    "ConnectionState",
]
