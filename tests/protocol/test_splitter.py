"""Tests for FrameSplitter: reassembly across arbitrary chunk boundaries."""
from __future__ import annotations

import random
import struct

import pytest

from rcon_lite.protocol.errors import MalformedPacket
from rcon_lite.protocol.packet import Packet, PacketType, decode_packet, encode_packet
from rcon_lite.protocol.splitter import FrameSplitter


def _packets(n: int, seed: int = 0) -> list[Packet]:
    rng = random.Random(seed)
    return [
        Packet(i, PacketType.RESPONSE_VALUE, bytes(rng.randrange(256) for _ in range(rng.randrange(0, 300))))
        for i in range(n)
    ]


def test_single_frame_single_chunk():
    wire = encode_packet(Packet(1, PacketType.RESPONSE_VALUE, b"ok"))
    splitter = FrameSplitter()
    assert splitter.feed(wire) == [wire]
    assert splitter.buffered == 0


def test_back_to_back_frames_in_one_chunk():
    a = encode_packet(Packet(1, PacketType.RESPONSE_VALUE, b"first"))
    b = encode_packet(Packet(2, PacketType.RESPONSE_VALUE, b"second"))
    assert FrameSplitter().feed(a + b) == [a, b]


def test_frame_split_byte_by_byte():
    wire = encode_packet(Packet(5, PacketType.RESPONSE_VALUE, b"hello"))
    splitter = FrameSplitter()
    out = []
    for i in range(len(wire)):
        out.extend(splitter.feed(wire[i : i + 1]))
        if i < len(wire) - 1:
            assert out == []
    assert out == [wire]


def test_partial_header_is_buffered():
    wire = encode_packet(Packet(1, PacketType.RESPONSE_VALUE, b"ok"))
    splitter = FrameSplitter()
    assert splitter.feed(wire[:3]) == []
    assert splitter.buffered == 3
    assert splitter.feed(wire[3:]) == [wire]


def test_remainder_kept_after_complete_frame():
    a = encode_packet(Packet(1, PacketType.RESPONSE_VALUE, b"a"))
    b = encode_packet(Packet(2, PacketType.RESPONSE_VALUE, b"b"))
    splitter = FrameSplitter()
    assert splitter.feed(a + b[:6]) == [a]
    assert splitter.buffered == 6
    assert splitter.feed(b[6:]) == [b]


@pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
def test_random_chunking_preserves_order(seed):
    """Any split of p1..pn yields exactly p1..pn, no loss, no duplicates."""
    packets = _packets(25, seed)
    stream = b"".join(encode_packet(p) for p in packets)
    rng = random.Random(seed)
    splitter = FrameSplitter()
    frames: list[bytes] = []
    pos = 0
    while pos < len(stream):
        step = rng.randint(1, 64)
        frames.extend(splitter.feed(stream[pos : pos + step]))
        pos += step
    assert [decode_packet(f) for f in frames] == packets
    assert splitter.buffered == 0


def test_oversized_frame_rejected():
    splitter = FrameSplitter(max_frame_size=64)
    wire = encode_packet(Packet(1, PacketType.RESPONSE_VALUE, b"x" * 100))
    with pytest.raises(MalformedPacket, match="exceeds limit"):
        splitter.feed(wire[:4])


def test_frame_at_limit_accepted():
    wire = encode_packet(Packet(1, PacketType.RESPONSE_VALUE, b"x" * 50))
    splitter = FrameSplitter(max_frame_size=len(wire))
    assert splitter.feed(wire) == [wire]


def test_negative_length_rejected():
    splitter = FrameSplitter()
    with pytest.raises(MalformedPacket):
        splitter.feed(struct.pack("<i", -1))


def test_complete_frame_before_bad_header_is_returned():
    wire = encode_packet(Packet(1, PacketType.RESPONSE_VALUE, b"ok"))
    splitter = FrameSplitter()
    assert splitter.feed(wire + struct.pack("<i", -1)) == [wire]
    assert isinstance(splitter.error, MalformedPacket)
    with pytest.raises(MalformedPacket, match="below"):
        splitter.feed(b"")


def test_complete_frame_before_oversized_header_is_returned():
    wire = encode_packet(Packet(1, PacketType.RESPONSE_VALUE, b"ok"))
    splitter = FrameSplitter(max_frame_size=64)
    assert splitter.feed(wire + struct.pack("<i", 1000)) == [wire]
    with pytest.raises(MalformedPacket, match="exceeds limit"):
        splitter.feed(wire)


def test_reset_clears_recorded_error():
    wire = encode_packet(Packet(1, PacketType.RESPONSE_VALUE, b"ok"))
    splitter = FrameSplitter()
    splitter.feed(wire + struct.pack("<i", -1))
    splitter.reset()
    assert splitter.error is None
    assert splitter.feed(wire) == [wire]


def test_length_below_minimum_rejected():
    splitter = FrameSplitter()
    with pytest.raises(MalformedPacket):
        splitter.feed(struct.pack("<iii", 4, 1, 0))


def test_reset_drops_partial_frame():
    wire = encode_packet(Packet(1, PacketType.RESPONSE_VALUE, b"ok"))
    splitter = FrameSplitter()
    splitter.feed(wire[:7])
    splitter.reset()
    assert splitter.buffered == 0
    assert splitter.feed(wire) == [wire]


def test_max_frame_size_must_hold_a_packet():
    with pytest.raises(ValueError):
        FrameSplitter(max_frame_size=13)
