"""Raw RTMP messages, split into and reassembled from chunks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Type, Union

from .bytecounter import CountingReader, CountingWriter
from .chunk import Chunk, Chunk0, Chunk1, Chunk2, Chunk3

_U32 = 0xFFFFFFFF
DEFAULT_CHUNK_SIZE = 128


class RawMessageError(Exception):
    """Raised when the chunk stream is inconsistent."""


class AcknowledgeError(RawMessageError):
    """Raised when the peer did not acknowledge within the window."""


@dataclass
class RawMessage:
    """A message before its body is decoded; ``timestamp`` is in milliseconds."""

    chunk_stream_id: int = 0
    timestamp: int = 0
    type: int = 0
    message_stream_id: int = 0
    body: bytes = b""


class _Prefixed:
    """A reader that yields an already consumed prefix before the stream."""

    def __init__(self, prefix: bytes, reader: Any) -> None:
        self._prefix = prefix
        self._reader = reader

    def read(self, size: int = -1) -> bytes:
        if self._prefix:
            if size < 0:
                size = len(self._prefix)
            head, self._prefix = self._prefix[:size], self._prefix[size:]
            return head
        return self._reader.read(size)


@dataclass
class _ReaderChunkStream:
    timestamp: Optional[int] = None
    type: Optional[int] = None
    message_stream_id: Optional[int] = None
    body_len: Optional[int] = None
    body: Optional[bytearray] = None
    timestamp_delta: Optional[int] = None


class RawMessageReader:
    """Reads raw messages from a counting reader."""

    def __init__(
        self,
        reader: CountingReader,
        on_ack_needed: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._reader = reader
        self._on_ack_needed = on_ack_needed
        self.chunk_size = DEFAULT_CHUNK_SIZE
        self.window_ack_size = 0
        self.last_ack_count = 0
        self._streams: Dict[int, _ReaderChunkStream] = {}

    def read(self) -> RawMessage:
        """Read chunks until a whole message is available and return it."""
        while True:
            first = self._reader.read(1)
            if not first:
                raise EOFError("end of stream")

            typ = first[0] >> 6
            chunk_stream_id = first[0] & 0x3F
            stream = self._streams.setdefault(chunk_stream_id, _ReaderChunkStream())

            msg = self._read_message(stream, typ, _Prefixed(first, self._reader))
            if msg is not None:
                msg.chunk_stream_id = chunk_stream_id
                return msg

    def _read_chunk(self, cls: Type[Any], source: Any, body_len: int) -> Any:
        chunk = cls.read(source, body_len)

        if self.window_ack_size:
            count = self._reader.count & _U32
            diff = (count - self.last_ack_count) & _U32
            if diff > self.window_ack_size:
                if self._on_ack_needed is not None:
                    self._on_ack_needed(count)
                self.last_ack_count = (self.last_ack_count + self.window_ack_size) & _U32

        return chunk

    def _complete(self, s: _ReaderChunkStream, body: bytes) -> RawMessage:
        return RawMessage(
            timestamp=s.timestamp or 0,
            type=s.type or 0,
            message_stream_id=s.message_stream_id or 0,
            body=body,
        )

    def _read_message(
        self, s: _ReaderChunkStream, typ: int, source: Any
    ) -> Optional[RawMessage]:
        if typ == 0:
            if s.body is not None:
                raise RawMessageError("received type 0 chunk but expected type 3 chunk")

            c0 = self._read_chunk(Chunk0, source, self.chunk_size)
            s.message_stream_id = c0.message_stream_id
            s.type = c0.type
            s.timestamp = c0.timestamp
            s.body_len = c0.body_len
            s.timestamp_delta = None

            if c0.body_len != len(c0.body):
                s.body = bytearray(c0.body)
                return None
            return self._complete(s, c0.body)

        if typ == 1:
            if s.timestamp is None:
                raise RawMessageError("received type 1 chunk without previous chunk")
            if s.body is not None:
                raise RawMessageError("received type 1 chunk but expected type 3 chunk")

            c1 = self._read_chunk(Chunk1, source, self.chunk_size)
            s.type = c1.type
            s.timestamp = (s.timestamp + c1.timestamp_delta) & _U32
            s.body_len = c1.body_len
            s.timestamp_delta = c1.timestamp_delta

            if c1.body_len != len(c1.body):
                s.body = bytearray(c1.body)
                return None
            return self._complete(s, c1.body)

        if typ == 2:
            if s.timestamp is None:
                raise RawMessageError("received type 2 chunk without previous chunk")
            if s.body is not None:
                raise RawMessageError("received type 2 chunk but expected type 3 chunk")

            body_len = s.body_len or 0
            c2 = self._read_chunk(Chunk2, source, min(body_len, self.chunk_size))
            s.timestamp = (s.timestamp + c2.timestamp_delta) & _U32
            s.timestamp_delta = c2.timestamp_delta

            if body_len != len(c2.body):
                s.body = bytearray(c2.body)
                return None
            return self._complete(s, c2.body)

        if s.body is None and s.timestamp_delta is None:
            raise RawMessageError("received type 3 chunk without previous chunk")

        body_len = s.body_len or 0

        if s.body is not None:
            remaining = min(body_len - len(s.body), self.chunk_size)
            c3 = self._read_chunk(Chunk3, source, remaining)
            s.body += c3.body
            if len(s.body) != body_len:
                return None
            body = bytes(s.body)
            s.body = None
            return self._complete(s, body)

        c3 = self._read_chunk(Chunk3, source, min(body_len, self.chunk_size))
        s.timestamp = ((s.timestamp or 0) + (s.timestamp_delta or 0)) & _U32

        if body_len != len(c3.body):
            s.body = bytearray(c3.body)
            return None
        return self._complete(s, c3.body)


@dataclass
class _WriterChunkStream:
    message_stream_id: Optional[int] = None
    type: Optional[int] = None
    body_len: Optional[int] = None
    timestamp: Optional[int] = None
    timestamp_delta: Optional[int] = None
    pending: bytearray = field(default_factory=bytearray)


class RawMessageWriter:
    """Writes raw messages to a counting writer, splitting them into chunks."""

    def __init__(self, writer: CountingWriter, check_acknowledge: bool = False) -> None:
        self._writer = writer
        self.check_acknowledge = check_acknowledge
        self.chunk_size = DEFAULT_CHUNK_SIZE
        self.window_ack_size = 0
        self.ack_value = 0
        self._streams: Dict[int, _WriterChunkStream] = {}

    def _check_ack(self) -> None:
        if self.check_acknowledge and self.window_ack_size:
            diff = ((self._writer.count & _U32) - self.ack_value) & _U32
            if diff > self.window_ack_size * 3 // 2:
                raise AcknowledgeError("no acknowledge received within window")

    def _first_chunk(
        self, s: _WriterChunkStream, msg: RawMessage, body: bytes, delta: Optional[int]
    ) -> Union[Chunk, Any]:
        body_len = len(msg.body)
        if s.message_stream_id is None or delta is None or s.message_stream_id != msg.message_stream_id:
            return Chunk0(
                chunk_stream_id=msg.chunk_stream_id,
                timestamp=msg.timestamp & _U32,
                type=msg.type,
                message_stream_id=msg.message_stream_id,
                body_len=body_len,
                body=body,
            )
        if s.type != msg.type or s.body_len != body_len:
            return Chunk1(
                chunk_stream_id=msg.chunk_stream_id,
                timestamp_delta=delta & _U32,
                type=msg.type,
                body_len=body_len,
                body=body,
            )
        if s.timestamp_delta is None or s.timestamp_delta != delta:
            return Chunk2(
                chunk_stream_id=msg.chunk_stream_id,
                timestamp_delta=delta & _U32,
                body=body,
            )
        return Chunk3(chunk_stream_id=msg.chunk_stream_id, body=body)

    def write(self, msg: RawMessage) -> None:
        """Write a message as one or more chunks."""
        s = self._streams.setdefault(msg.chunk_stream_id, _WriterChunkStream())
        body = bytes(msg.body)
        body_len = len(body)

        delta: Optional[int] = None
        if s.timestamp is not None:
            diff = msg.timestamp - s.timestamp
            if diff >= 0:
                delta = diff

        out = bytearray()
        pos = 0
        first = True
        while True:
            part = body[pos:pos + self.chunk_size]
            self._check_ack()

            if first:
                first = False
                chunk = self._first_chunk(s, msg, part, delta)
                s.message_stream_id = msg.message_stream_id
                s.type = msg.type
                s.body_len = body_len
                s.timestamp = msg.timestamp
                if delta is not None:
                    s.timestamp_delta = delta
            else:
                chunk = Chunk3(chunk_stream_id=msg.chunk_stream_id, body=part)

            out += chunk.marshal()
            pos += len(part)
            if pos >= body_len:
                break

        self._writer.write(bytes(out))
        flush = getattr(self._writer, "flush", None)
        if flush is not None:
            flush()