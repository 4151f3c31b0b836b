"""Reassemble complete RCON frames from an arbitrarily chunked byte stream.

TCP delivers bytes, not packets. A single read can hold half a frame,
exactly one frame, or several frames back to back. FrameSplitter buffers
whatever arrives and hands out each frame as soon as all of its
length + 4 bytes are present:

    splitter = FrameSplitter()
    for chunk in chunks:
        for frame in splitter.feed(chunk):
            packet = decode_packet(frame)

Frames are returned with their length prefix so they can go straight to
decode_packet. Nothing is ever emitted partially and no byte is dropped
between reads.

The declared length is bounded on both sides. A length below the minimal
packet size would make the splitter emit empty slices forever, and an
unbounded one lets a peer make us buffer as much memory as it likes.
Either way the stream cannot be resynchronised, so MalformedPacket is
raised and the caller is expected to drop the connection. Frames that were
complete before the bad header are handed out first.
"""
from __future__ import annotations

import struct

from rcon_lite.protocol.errors import MalformedPacket
from rcon_lite.protocol.packet import HEADER_SIZE, MAX_FRAME_SIZE, MIN_PACKET_LENGTH

_LENGTH = struct.Struct("<i")


class FrameSplitter:
    """Streaming frame reassembler with a frame size cap.

    Args:
        max_frame_size: largest accepted frame in bytes, length prefix
            included (default MAX_FRAME_SIZE).
    """

    def __init__(self, max_frame_size: int = MAX_FRAME_SIZE) -> None:
        if max_frame_size < HEADER_SIZE + MIN_PACKET_LENGTH:
            raise ValueError(f"max_frame_size {max_frame_size} cannot hold a packet")
        self._max_frame_size = max_frame_size
        self._buffer = bytearray()
        self._error: MalformedPacket | None = None

    @property
    def buffered(self) -> int:
        """Bytes received but not yet emitted as part of a frame."""
        return len(self._buffer)

    @property
    def max_frame_size(self) -> int:
        return self._max_frame_size

    @property
    def error(self) -> MalformedPacket | None:
        """The framing error that stopped the splitter, if any."""
        return self._error

    def feed(self, chunk: bytes) -> list[bytes]:
        """Append a chunk and return every frame it completed, in order.

        Frames completed ahead of a bad header in the same chunk are still
        returned; the error is then recorded in `error` and raised by the
        next call.

        Raises:
            MalformedPacket: if a declared length is below the minimal
                packet size or the frame would exceed max_frame_size.
        """
        if self._error is not None:
            raise self._error
        self._buffer.extend(chunk)
        frames: list[bytes] = []
        while len(self._buffer) >= HEADER_SIZE:
            (length,) = _LENGTH.unpack_from(self._buffer, 0)
            total = length + HEADER_SIZE
            if length < MIN_PACKET_LENGTH:
                self._error = MalformedPacket(
                    f"Declared length {length} is below {MIN_PACKET_LENGTH}"
                )
            elif total > self._max_frame_size:
                self._error = MalformedPacket(
                    f"Frame size {total} exceeds limit {self._max_frame_size}"
                )
            if self._error is not None:
                if not frames:
                    raise self._error
                break
            if len(self._buffer) < total:
                break
            frames.append(bytes(self._buffer[:total]))
            del self._buffer[:total]
        return frames

    def reset(self) -> None:
        """Drop any buffered partial frame and clear a recorded error."""
        self._buffer.clear()
        self._error = None
