import io

import pytest

from rtmplink.chunk import Chunk0, Chunk1, Chunk2, Chunk3, MessageType, read_exact

CHUNK0_ENC = bytes([
    0x19, 0xB1, 0xA1, 0x91, 0x0, 0x0, 0x14, 0x14,
    0x3, 0x5D, 0x17, 0x3D, 0x1, 0x2, 0x3, 0x4,
])
CHUNK0_DEC = Chunk0(
    chunk_stream_id=25,
    timestamp=11641233,
    type=MessageType.COMMAND_AMF0,
    message_stream_id=56432445,
    body_len=20,
    body=b"\x01\x02\x03\x04",
)

CHUNK1_ENC = bytes([
    0x59, 0xB1, 0xA1, 0x91, 0x0, 0x0, 0x14, 0x14,
    0x1, 0x2, 0x3, 0x4,
])
CHUNK1_DEC = Chunk1(
    chunk_stream_id=25,
    timestamp_delta=11641233,
    type=MessageType.COMMAND_AMF0,
    body_len=20,
    body=b"\x01\x02\x03\x04",
)

CHUNK2_ENC = bytes([0x99, 0xB1, 0xA1, 0x91, 0x1, 0x2, 0x3, 0x4])
CHUNK2_DEC = Chunk2(chunk_stream_id=25, timestamp_delta=11641233, body=b"\x01\x02\x03\x04")

CHUNK3_ENC = bytes([0xD9, 0x1, 0x2, 0x3, 0x4])
CHUNK3_DEC = Chunk3(chunk_stream_id=25, body=b"\x01\x02\x03\x04")


def test_chunk0_read():
    assert Chunk0.read(io.BytesIO(CHUNK0_ENC), 4) == CHUNK0_DEC


def test_chunk1_read():
    assert Chunk1.read(io.BytesIO(CHUNK1_ENC), 4) == CHUNK1_DEC


def test_chunk2_read():
    assert Chunk2.read(io.BytesIO(CHUNK2_ENC), 4) == CHUNK2_DEC


def test_chunk3_read():
    assert Chunk3.read(io.BytesIO(CHUNK3_ENC), 4) == CHUNK3_DEC


def test_chunk0_marshal():
    assert Chunk0(
        chunk_stream_id=25,
        timestamp=11641233,
        type=MessageType.COMMAND_AMF0,
        message_stream_id=56432445,
        body_len=20,
        body=b"\x01\x02\x03\x04",
    ).marshal() == CHUNK0_ENC


def test_chunk1_marshal():
    assert Chunk1(
        chunk_stream_id=25,
        timestamp_delta=11641233,
        type=MessageType.COMMAND_AMF0,
        body_len=20,
        body=b"\x01\x02\x03\x04",
    ).marshal() == CHUNK1_ENC


def test_chunk2_marshal():
    assert Chunk2(
        chunk_stream_id=25, timestamp_delta=11641233, body=b"\x01\x02\x03\x04"
    ).marshal() == CHUNK2_ENC


def test_chunk3_marshal():
    assert Chunk3(chunk_stream_id=25, body=b"\x01\x02\x03\x04").marshal() == CHUNK3_ENC


def test_chunk0_read_keeps_message_type_enum():
    chunk = Chunk0.read(io.BytesIO(CHUNK0_ENC), 4)
    assert chunk.type is MessageType.COMMAND_AMF0


def test_chunk0_unknown_type_kept_as_int():
    enc = bytearray(CHUNK0_ENC)
    enc[7] = 99
    assert Chunk0.read(io.BytesIO(bytes(enc)), 4).type == 99


def test_chunk0_truncated_input_raises():
    with pytest.raises(EOFError):
        Chunk0.read(io.BytesIO(CHUNK0_ENC[:-1]), 4)


def test_chunk1_truncated_input_raises():
    with pytest.raises(EOFError):
        Chunk1.read(io.BytesIO(CHUNK1_ENC[:-1]), 4)


def test_chunk2_truncated_input_raises():
    with pytest.raises(EOFError):
        Chunk2.read(io.BytesIO(CHUNK2_ENC[:-1]), 4)


def test_chunk3_truncated_input_raises():
    with pytest.raises(EOFError):
        Chunk3.read(io.BytesIO(CHUNK3_ENC[:-1]), 4)


def test_read_exact_collects_partial_reads():
    class Trickle:
        def __init__(self, data):
            self.data = data

        def read(self, size):
            part, self.data = self.data[:1], self.data[1:]
            return part

    assert read_exact(Trickle(b"abcd"), 3) == b"abc"