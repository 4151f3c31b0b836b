"""Binary packet codec for the RCON protocol.

Frame format (all integers little-endian int32):
    4 bytes: length  (= 10 + len(payload), everything after this field)
    4 bytes: request id
    4 bytes: packet type
    N bytes: payload
    2 bytes: NUL terminators

So a packet with an N-byte payload occupies exactly 14 + N bytes on the
wire. The terminators are written but never validated on read: decoding
slices the payload as data[12 : length + 2].

The encoder is pure. The decoder trusts the length field once it has
checked that the buffer actually holds that many bytes; anything shorter
is rejected with MalformedPacket instead of producing a truncated packet.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from rcon_lite.protocol.errors import MalformedPacket


HEADER_SIZE = 4           # length prefix, not counted in the length field
MIN_PACKET_LENGTH = 10    # id + type + two terminators
MAX_FRAME_SIZE = 1024 * 1024  # 1 MB safety limit
AUTH_FAILED_ID = -1

_HEADER = struct.Struct("<iii")
_TERMINATOR = b"\x00\x00"


class PacketType(IntEnum):
    # COMMAND and AUTH_RESPONSE share a value on the wire.
    RESPONSE_VALUE = 0
    AUTH_RESPONSE = 2
    COMMAND = 2
    AUTH = 3
    EVAL = 4


@dataclass(frozen=True, slots=True)
class Packet:
    """One RCON packet. `type` is a PacketType or any int32 a peer sent."""
    id: int
    type: int
    payload: bytes = b""

    @property
    def text(self) -> str:
        return self.payload.decode("utf-8", errors="replace")

    def to_bytes(self) -> bytes:
        return encode_packet(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> Packet:
        return decode_packet(data)


def encode_packet(packet: Packet) -> bytes:
    """Serialize to wire format: header + payload + two NUL bytes."""
    header = _HEADER.pack(
        len(packet.payload) + MIN_PACKET_LENGTH,
        packet.id,
        int(packet.type),
    )
    return header + packet.payload + _TERMINATOR


def decode_packet(data: bytes) -> Packet:
    """Deserialize one complete frame (length prefix included).

    Raises:
        MalformedPacket: if the buffer is shorter than a minimal frame,
            the declared length is below 10, or the buffer holds fewer
            than length + 4 bytes.
    """
    if len(data) < HEADER_SIZE + MIN_PACKET_LENGTH:
        raise MalformedPacket(f"Frame of {len(data)} bytes is too short")
    length, request_id, packet_type = _HEADER.unpack_from(data, 0)
    if length < MIN_PACKET_LENGTH:
        raise MalformedPacket(f"Declared length {length} is below {MIN_PACKET_LENGTH}")
    if len(data) < length + HEADER_SIZE:
        raise MalformedPacket(
            f"Frame declares {length + HEADER_SIZE} bytes but only {len(data)} present"
        )
    return Packet(
        id=request_id,
        type=packet_type,
        payload=bytes(data[_HEADER.size : length + 2]),
    )
