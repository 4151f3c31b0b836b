"""RCON wire protocol: packet codec, frame splitter and error types.

Pure, stateless apart from the splitter's buffer. No sockets here; the
client package owns the connection.
"""
from rcon_lite.protocol.errors import (
    AlreadyClosed,
    AlreadyConnected,
    AuthenticationFailed,
    ConnectionClosed,
    InvalidTransition,
    MalformedPacket,
    NotConnected,
    RconError,
    RequestTimeout,
    TransportError,
)
from rcon_lite.protocol.packet import (
    AUTH_FAILED_ID,
    HEADER_SIZE,
    MAX_FRAME_SIZE,
    MIN_PACKET_LENGTH,
    Packet,
    PacketType,
    decode_packet,
    encode_packet,
)
from rcon_lite.protocol.splitter import FrameSplitter

__all__ = [
    "AlreadyClosed",
    "AlreadyConnected",
    "AuthenticationFailed",
    "ConnectionClosed",
    "InvalidTransition",
    "MalformedPacket",
    "NotConnected",
    "RconError",
    "RequestTimeout",
    "TransportError",
    "AUTH_FAILED_ID",
    "HEADER_SIZE",
    "MAX_FRAME_SIZE",
    "MIN_PACKET_LENGTH",
    "Packet",
    "PacketType",
    "decode_packet",
    "encode_packet",
    "FrameSplitter",
]
