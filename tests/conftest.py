"""Shared helpers for rcon_lite tests.

Provides a fake asyncio RCON server that speaks the real wire format,
so client tests exercise actual sockets, the splitter and the codec
end to end.

Requires: pip install pytest-asyncio
"""
from __future__ import annotations

import asyncio
import contextlib
import socket
import struct
from typing import AsyncIterator, Awaitable, Callable

from rcon_lite.config import RconConfig
from rcon_lite.protocol.packet import AUTH_FAILED_ID, Packet, PacketType, decode_packet

Reply = Packet | bytes
Handler = Callable[[Packet], Awaitable["list[Reply] | None"]]


async def echo_handler(packet: Packet) -> list[Reply]:
    """Reply with the command text itself."""
    return [Packet(packet.id, PacketType.RESPONSE_VALUE, packet.payload)]


async def ok_handler(packet: Packet) -> list[Reply]:
    return [Packet(packet.id, PacketType.RESPONSE_VALUE, b"ok")]


async def silent_handler(packet: Packet) -> None:
    """Never answer."""
    return None


class FakeRconServer:
    """Minimal RCON server on 127.0.0.1 with a pluggable command handler.

    Args:
        password: accepted login password.
        handler: async callable packet -> replies (None = no reply).
            Each request is handled in its own task so slow replies do
            not block reading the next request.
        auth_reply_id: optional callable request_id -> reply id, or
            None to leave the login unanswered. Overrides the normal
            password check.
    """

    def __init__(
        self,
        password: str = "secret",
        handler: Handler = echo_handler,
        auth_reply_id: Callable[[int], int | None] | None = None,
    ) -> None:
        self.password = password
        self.handler = handler
        self.auth_reply_id = auth_reply_id
        self.received: list[Packet] = []
        self.outstanding = 0
        self.max_outstanding = 0
        self.connections = 0
        self._writers: list[asyncio.StreamWriter] = []
        self._tasks: set[asyncio.Task] = set()
        self._server: asyncio.AbstractServer | None = None
        self.port = 0

    @property
    def commands(self) -> list[Packet]:
        return [p for p in self.received if p.type != PacketType.AUTH]

    def config(self, **overrides) -> RconConfig:
        fields = dict(host="127.0.0.1", port=self.port, password=self.password)
        fields.update(overrides)
        return RconConfig(**fields)

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        self.drop_clients()
        for task in list(self._tasks):
            task.cancel()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    def drop_clients(self) -> None:
        """Close every client connection from the server side."""
        for writer in self._writers:
            writer.close()
        self._writers.clear()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        self._writers.append(writer)
        try:
            while True:
                header = await reader.readexactly(4)
                (length,) = struct.unpack("<i", header)
                body = await reader.readexactly(length)
                packet = decode_packet(header + body)
                self.received.append(packet)
                if packet.type == PacketType.AUTH:
                    self._answer_login(writer, packet)
                else:
                    task = asyncio.ensure_future(self._answer(writer, packet))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            writer.close()

    def _answer_login(self, writer: asyncio.StreamWriter, packet: Packet) -> None:
        if self.auth_reply_id is not None:
            reply_id = self.auth_reply_id(packet.id)
        elif packet.text == self.password:
            reply_id = packet.id
        else:
            reply_id = AUTH_FAILED_ID
        if reply_id is not None:
            writer.write(Packet(reply_id, PacketType.AUTH_RESPONSE).to_bytes())

    async def _answer(self, writer: asyncio.StreamWriter, packet: Packet) -> None:
        self.outstanding += 1
        self.max_outstanding = max(self.max_outstanding, self.outstanding)
        try:
            replies = await self.handler(packet)
        finally:
            self.outstanding -= 1
        if not replies or writer.is_closing():
            return
        writer.write(b"".join(r if isinstance(r, bytes) else r.to_bytes() for r in replies))
        with contextlib.suppress(ConnectionError):
            await writer.drain()


@contextlib.asynccontextmanager
async def running_server(**kwargs) -> AsyncIterator[FakeRconServer]:
    """Start a FakeRconServer for the duration of the block."""
    srv = FakeRconServer(**kwargs)
    await srv.start()
    try:
        yield srv
    finally:
        await srv.stop()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true or fail after `timeout` seconds."""
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


def unused_port() -> int:
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
