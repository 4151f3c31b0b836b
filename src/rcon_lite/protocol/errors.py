"""Exception hierarchy for the RCON client.

Every error raised by rcon_lite derives from RconError, so callers that
only care about "the remote command did not work" can catch one type.

Transport and protocol failures:
  - TransportError: the socket failed (wraps the OSError that caused it)
  - AuthenticationFailed: the server rejected the password
  - RequestTimeout: no reply for one request within the configured timeout
  - ConnectionClosed: the connection ended while the request was pending
  - MalformedPacket: bytes on the wire do not form a valid packet

Usage errors (raised before any state change):
  - AlreadyConnected, NotConnected, AlreadyClosed
"""
from __future__ import annotations


class RconError(Exception):
    """Base class for all rcon_lite errors."""


class TransportError(RconError):
    """Socket-level failure. The underlying OSError is the __cause__."""


class AuthenticationFailed(RconError):
    """The authentication reply was missing, mismatched or the failure id."""


class RequestTimeout(RconError):
    """No reply arrived for a request before its timer fired."""

    def __init__(self, request_id: int, timeout: float) -> None:
        super().__init__(f"Timeout for packet id {request_id} after {timeout:.3f}s")
        self.request_id = request_id
        self.timeout = timeout


class ConnectionClosed(RconError):
    """The connection ended while the request was still waiting."""


class MalformedPacket(RconError, ValueError):
    """A frame is truncated, too short, or larger than the frame size cap."""


class AlreadyConnected(RconError):
    """connect() called while connected or connecting."""


class NotConnected(RconError):
    """Operation needs an authenticated connection and there is none."""


class AlreadyClosed(RconError):
    """end() called while a close is already in progress."""


class InvalidTransition(RconError):
    """Raised when a connection state transition is not allowed."""
