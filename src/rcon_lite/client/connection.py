"""Asyncio RCON client: one TCP connection, authenticated, with correlated replies.

Architecture:
    Single event loop, no threads.
    Rcon owns the StreamReader/StreamWriter pair and one reader task.
    The reader task feeds every chunk through a FrameSplitter and hands
    each decoded packet to the PendingRequestTable.
    Outbound commands pass through a SendQueue that limits how many are
    in flight at once (max_pending, default 1).

Handshake:
    connect() opens the socket and immediately sends the AUTH packet with
    the password. The auth request bypasses the (still paused) queue, so
    it is the only request in flight. Some servers answer a failed login
    without echoing the request id, so until authentication completes
    every reply is matched against the last issued id. The login is
    accepted only if the reply's id equals the request id and is not the
    failure id (-1). Only then is the queue resumed and the state READY.

Teardown:
    Whatever ends the connection (end(), peer close, socket error, a
    frame that cannot be parsed) goes through _handle_close(): the queue
    is paused, queued and pending requests fail with ConnectionClosed,
    END is emitted. Nothing reconnects automatically.

Usage:
    async with Rcon(host="mc.example.com", password="secret") as rcon:
        print(await rcon.send("list"))
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from typing import Any, Callable

from rcon_lite.client.pending import PendingRequestTable
from rcon_lite.client.send_queue import SendQueue
from rcon_lite.client.state import (
    IDLE_STATES,
    VALID_TRANSITIONS,
    ConnectionEvent,
    ConnectionState,
)
from rcon_lite.config import RconConfig
from rcon_lite.protocol.errors import (
    AlreadyClosed,
    AlreadyConnected,
    AuthenticationFailed,
    ConnectionClosed,
    InvalidTransition,
    MalformedPacket,
    NotConnected,
    RconError,
    TransportError,
)
from rcon_lite.protocol.packet import (
    AUTH_FAILED_ID,
    Packet,
    PacketType,
    decode_packet,
    encode_packet,
)
from rcon_lite.protocol.splitter import FrameSplitter

log = logging.getLogger(__name__)

Listener = Callable[..., Any]

_READ_SIZE = 4096


class Rcon:
    """RCON client connection.

    Args:
        config: connection settings (default RconConfig()).
        **overrides: individual RconConfig fields, applied on top of config.
    """

    def __init__(self, config: RconConfig | None = None, **overrides: Any) -> None:
        config = config or RconConfig()
        if overrides:
            config = config.with_overrides(**overrides)
        self._config = config
        self._state = ConnectionState.DISCONNECTED
        self._authenticated = False
        self._request_id = 0
        self._pending = PendingRequestTable(config.timeout_seconds)
        self._queue = SendQueue(config.max_pending)
        self._listeners: dict[ConnectionEvent, list[Listener]] = {
            event: [] for event in ConnectionEvent
        }
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._read_task: asyncio.Task[None] | None = None
        self._closed = asyncio.Event()

    @classmethod
    async def open(cls, config: RconConfig | None = None, **overrides: Any) -> Rcon:
        """Create a client and connect it."""
        rcon = cls(config, **overrides)
        return await rcon.connect()

    @property
    def config(self) -> RconConfig:
        return self._config

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def authenticated(self) -> bool:
        return self._authenticated

    @property
    def pending_count(self) -> int:
        """Requests written to the socket and awaiting a reply."""
        return len(self._pending)

    @property
    def queued_count(self) -> int:
        """Requests waiting for a send slot."""
        return len(self._queue)

    async def __aenter__(self) -> Rcon:
        if self._state in IDLE_STATES:
            await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._state in (ConnectionState.AUTHENTICATING, ConnectionState.READY):
            await self.end()

    # --- notifications ---

    def on(self, event: ConnectionEvent | str, callback: Listener) -> None:
        """Register a listener. ERROR listeners receive the exception."""
        self._listeners[ConnectionEvent(event)].append(callback)

    def once(self, event: ConnectionEvent | str, callback: Listener) -> None:
        event = ConnectionEvent(event)

        def wrapper(*args: Any) -> None:
            listeners = self._listeners[event]
            if wrapper in listeners:
                listeners.remove(wrapper)
            callback(*args)

        wrapper.__wrapped__ = callback  # type: ignore[attr-defined]
        self._listeners[event].append(wrapper)

    def off(self, event: ConnectionEvent | str, callback: Listener) -> None:
        listeners = self._listeners[ConnectionEvent(event)]
        for listener in listeners:
            if listener is callback:
                listeners.remove(listener)
                return
        for listener in listeners:
            if getattr(listener, "__wrapped__", None) is callback:
                listeners.remove(listener)
                return

    def _emit(self, event: ConnectionEvent, *args: Any) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception:
                log.exception("Listener for %r failed", event.value)

    # --- lifecycle ---

    async def connect(self) -> Rcon:
        """Open the socket and authenticate.

        Raises:
            AlreadyConnected: if not DISCONNECTED or CLOSED.
            TransportError: if the socket cannot be opened.
            AuthenticationFailed: if the server rejects the password.
            RequestTimeout: if the server does not answer the login.
            ConnectionClosed: if the connection ends during the login.
        """
        if self._state not in IDLE_STATES:
            raise AlreadyConnected(f"Already {self._state.name.lower()}")
        host, port = self._config.host, self._config.port
        self._transition_to(ConnectionState.CONNECTING)
        try:
            reader, writer = await asyncio.open_connection(host, port)
        except OSError as exc:
            self._transition_to(ConnectionState.DISCONNECTED)
            raise TransportError(f"Cannot connect to {host}:{port}: {exc}") from exc
        except asyncio.CancelledError:
            self._transition_to(ConnectionState.DISCONNECTED)
            raise

        sock = writer.get_extra_info("socket")
        if sock is not None:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        self._reader, self._writer = reader, writer
        self._closed = asyncio.Event()
        self._transition_to(ConnectionState.AUTHENTICATING)
        log.debug("Connected to %s:%d", host, port)
        self._emit(ConnectionEvent.CONNECT)
        self._read_task = asyncio.ensure_future(
            self._read_loop(reader, FrameSplitter(self._config.max_frame_size))
        )

        request_id = self._request_id
        try:
            packet = await self._send_packet(
                PacketType.AUTH,
                self._config.password.encode("utf-8"),
                queued=False,
            )
        except (RconError, asyncio.CancelledError):
            await self._abort()
            raise

        if self._state is not ConnectionState.AUTHENTICATING:
            # end() was called while the login was in flight.
            await self._abort()
            raise ConnectionClosed("Connection closed during authentication")
        if packet.id != request_id or packet.id == AUTH_FAILED_ID:
            log.debug("Authentication rejected (sent id %d, got %d)", request_id, packet.id)
            await self._abort()
            raise AuthenticationFailed("Authentication failed")

        self._authenticated = True
        self._transition_to(ConnectionState.READY)
        self._queue.resume()
        self._emit(ConnectionEvent.AUTHENTICATED)
        return self

    async def end(self) -> None:
        """Close the connection gracefully and wait until it is closed.

        Sends EOF and waits for the server to close its side. If it has
        not done so within the configured timeout, the socket is closed
        locally.

        Raises:
            AlreadyClosed: if a close is already in progress.
            NotConnected: if there is no open connection.
        """
        if self._state is ConnectionState.CLOSING:
            raise AlreadyClosed("End called twice")
        writer = self._writer
        if writer is None or self._state not in (
            ConnectionState.AUTHENTICATING,
            ConnectionState.READY,
        ):
            raise NotConnected("Not connected")

        self._transition_to(ConnectionState.CLOSING)
        self._queue.pause()
        closed = self._closed
        try:
            if writer.can_write_eof():
                writer.write_eof()
            else:
                writer.close()
        except OSError as exc:
            log.debug("Half-close failed: %s", exc)
            self._handle_close(None)
            return

        try:
            await asyncio.wait_for(closed.wait(), self._config.timeout_seconds)
        except asyncio.TimeoutError:
            log.debug(
                "Peer did not close within %.3fs, closing locally",
                self._config.timeout_seconds,
            )
            self._handle_close(None)

    # --- requests ---

    async def send(self, command: str) -> str:
        """Run a command and return the server's response text."""
        payload = await self.send_raw(command.encode("utf-8"))
        return payload.decode("utf-8", errors="replace")

    async def send_raw(
        self,
        payload: bytes,
        packet_type: int = PacketType.COMMAND,
    ) -> bytes:
        """Send an arbitrary payload with the given packet type.

        Raises:
            NotConnected: if the connection is not READY.
            RequestTimeout: if no reply arrives in time.
            ConnectionClosed: if the connection ends first.
        """
        if (
            not self._authenticated
            or self._writer is None
            or self._state is not ConnectionState.READY
        ):
            raise NotConnected("Not connected")
        packet = await self._send_packet(packet_type, payload)
        return packet.payload

    async def _send_packet(
        self,
        packet_type: int,
        payload: bytes,
        queued: bool = True,
    ) -> Packet:
        request_id = self._request_id
        self._request_id += 1

        async def transmit() -> Packet:
            writer = self._writer
            if writer is None:
                raise ConnectionClosed("Connection closed before request was sent")
            future = self._pending.register(request_id)
            writer.write(encode_packet(Packet(request_id, packet_type, payload)))
            log.debug(
                "Sent packet id=%d type=%d (%d bytes)",
                request_id, packet_type, len(payload),
            )
            try:
                await writer.drain()
            except ConnectionError as exc:
                error = TransportError(f"Write failed for packet id {request_id}: {exc}")
                error.__cause__ = exc
                self._pending.reject(request_id, error)
            except BaseException:
                # Cancelled while waiting for buffer space.
                future.cancel()
                raise
            return await future

        if not queued:
            return await transmit()
        return await self._queue.add(transmit)

    # --- inbound ---

    async def _read_loop(self, reader: asyncio.StreamReader, splitter: FrameSplitter) -> None:
        error: RconError | None = None
        try:
            while True:
                chunk = await reader.read(_READ_SIZE)
                if not chunk:
                    log.debug("Server closed the connection")
                    break
                for frame in splitter.feed(chunk):
                    self._handle_frame(frame)
                if splitter.error is not None:
                    raise splitter.error
        except MalformedPacket as exc:
            log.warning("Dropping connection, unreadable stream: %s", exc)
            error = exc
        except OSError as exc:
            log.debug("Connection lost: %s", exc)
            error = TransportError(f"Connection lost: {exc}")
            error.__cause__ = exc
        finally:
            if self._reader is reader:
                self._handle_close(error)

    def _handle_frame(self, frame: bytes) -> None:
        # The splitter only emits complete frames with a valid length, so
        # decoding cannot fail here.
        packet = decode_packet(frame)
        log.debug(
            "Received packet id=%d type=%d (%d bytes)",
            packet.id, packet.type, len(packet.payload),
        )
        request_id = packet.id if self._authenticated else self._request_id - 1
        if not self._pending.resolve(request_id, packet):
            log.debug("No pending request for packet id %d", packet.id)

    # --- teardown ---

    def _handle_close(self, error: RconError | None) -> None:
        writer = self._writer
        if writer is None:
            return
        self._reader = None
        self._writer = None
        self._read_task = None
        writer.close()

        self._queue.pause()
        self._authenticated = False

        def closed_error() -> ConnectionClosed:
            exc = ConnectionClosed("Connection closed")
            exc.__cause__ = error
            return exc

        queued = self._queue.clear(closed_error)
        rejected = self._pending.reject_all(closed_error)
        if self._state is ConnectionState.CLOSING:
            self._transition_to(ConnectionState.CLOSED)
        else:
            self._transition_to(ConnectionState.DISCONNECTED)
        log.debug(
            "Connection ended (%d pending, %d queued requests failed)",
            rejected, queued,
        )
        if error is not None:
            self._emit(ConnectionEvent.ERROR, error)
        self._emit(ConnectionEvent.END)
        self._closed.set()

    async def _abort(self) -> None:
        """Drop the connection immediately and stop the reader task."""
        task = self._read_task
        if self._writer is not None:
            self._writer.transport.abort()
        self._handle_close(None)
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _transition_to(self, new_state: ConnectionState) -> None:
        allowed = VALID_TRANSITIONS.get(self._state, set())
        if new_state not in allowed:
            raise InvalidTransition(
                f"Cannot transition from {self._state.name} to {new_state.name}"
            )
        log.debug("State %s -> %s", self._state.name, new_state.name)
        self._state = new_state


async def connect(config: RconConfig | None = None, **overrides: Any) -> Rcon:
    """Connect and authenticate; returns a READY Rcon."""
    return await Rcon.open(config, **overrides)
