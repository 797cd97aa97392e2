"""RTMP chunk headers of types 0 to 3."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Union


class MessageType(IntEnum):
    """RTMP message type identifiers."""

    SET_CHUNK_SIZE = 1
    ABORT_MESSAGE = 2
    ACKNOWLEDGE = 3
    USER_CONTROL = 4
    SET_WINDOW_ACK_SIZE = 5
    SET_PEER_BANDWIDTH = 6
    AUDIO = 8
    VIDEO = 9
    DATA_AMF3 = 15
    COMMAND_AMF3 = 17
    DATA_AMF0 = 18
    COMMAND_AMF0 = 20


def _message_type(value: int) -> int:
    try:
        return MessageType(value)
    except ValueError:
        return value


def read_exact(r: Any, size: int) -> bytes:
    """Read exactly ``size`` bytes from ``r`` or raise EOFError."""
    buf = bytearray()
    while len(buf) < size:
        part = r.read(size - len(buf))
        if not part:
            raise EOFError(f"expected {size} bytes, got {len(buf)}")
        buf += part
    return bytes(buf)


def _u24(value: int) -> bytes:
    return (value & 0xFFFFFF).to_bytes(3, "big")


@dataclass
class Chunk0:
    """Type 0 chunk: starts a chunk stream or follows a backward timestamp."""

    chunk_stream_id: int = 0
    timestamp: int = 0
    type: int = 0
    message_stream_id: int = 0
    body_len: int = 0
    body: bytes = b""

    @classmethod
    def read(cls, r: Any, max_body_len: int) -> "Chunk0":
        header = read_exact(r, 12)
        body_len = int.from_bytes(header[4:7], "big")
        chunk = cls(
            chunk_stream_id=header[0] & 0x3F,
            timestamp=int.from_bytes(header[1:4], "big"),
            type=_message_type(header[7]),
            message_stream_id=int.from_bytes(header[8:12], "big"),
            body_len=body_len,
        )
        chunk.body = read_exact(r, min(body_len, max_body_len))
        return chunk

    def marshal(self) -> bytes:
        return (
            bytes([self.chunk_stream_id & 0xFF])
            + _u24(self.timestamp)
            + _u24(self.body_len)
            + bytes([int(self.type) & 0xFF])
            + (self.message_stream_id & 0xFFFFFFFF).to_bytes(4, "big")
            + bytes(self.body)
        )


@dataclass
class Chunk1:
    """Type 1 chunk: reuses the message stream ID of the previous chunk."""

    chunk_stream_id: int = 0
    timestamp_delta: int = 0
    type: int = 0
    body_len: int = 0
    body: bytes = b""

    @classmethod
    def read(cls, r: Any, max_body_len: int) -> "Chunk1":
        header = read_exact(r, 8)
        body_len = int.from_bytes(header[4:7], "big")
        chunk = cls(
            chunk_stream_id=header[0] & 0x3F,
            timestamp_delta=int.from_bytes(header[1:4], "big"),
            type=_message_type(header[7]),
            body_len=body_len,
        )
        chunk.body = read_exact(r, min(body_len, max_body_len))
        return chunk

    def marshal(self) -> bytes:
        return (
            bytes([(1 << 6 | self.chunk_stream_id) & 0xFF])
            + _u24(self.timestamp_delta)
            + _u24(self.body_len)
            + bytes([int(self.type) & 0xFF])
            + bytes(self.body)
        )


@dataclass
class Chunk2:
    """Type 2 chunk: reuses stream ID and message length of the previous chunk."""

    chunk_stream_id: int = 0
    timestamp_delta: int = 0
    body: bytes = b""

    @classmethod
    def read(cls, r: Any, body_len: int) -> "Chunk2":
        header = read_exact(r, 4)
        return cls(
            chunk_stream_id=header[0] & 0x3F,
            timestamp_delta=int.from_bytes(header[1:4], "big"),
            body=read_exact(r, body_len),
        )

    def marshal(self) -> bytes:
        return (
            bytes([(2 << 6 | self.chunk_stream_id) & 0xFF])
            + _u24(self.timestamp_delta)
            + bytes(self.body)
        )


@dataclass
class Chunk3:
    """Type 3 chunk: carries no message header."""

    chunk_stream_id: int = 0
    body: bytes = b""

    @classmethod
    def read(cls, r: Any, body_len: int) -> "Chunk3":
        header = read_exact(r, 1)
        return cls(chunk_stream_id=header[0] & 0x3F, body=read_exact(r, body_len))

    def marshal(self) -> bytes:
        return bytes([(3 << 6 | self.chunk_stream_id) & 0xFF]) + bytes(self.body)


Chunk = Union[Chunk0, Chunk1, Chunk2, Chunk3]