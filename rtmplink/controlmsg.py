"""RTMP protocol control and user control messages."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum

from .chunk import MessageType
from .rawmessage import RawMessage

CONTROL_CHUNK_STREAM_ID = 2
"""Chunk stream ID used for control messages."""

_U32 = 0xFFFFFFFF


class MessageError(ValueError):
    """Raised when a message cannot be decoded."""


class Message(ABC):
    """A decoded RTMP message."""

    @classmethod
    @abstractmethod
    def unmarshal(cls, raw: RawMessage) -> "Message":
        """Decode a message from a raw message."""

    @abstractmethod
    def marshal(self) -> RawMessage:
        """Encode the message into a raw message."""


class UserControlType(IntEnum):
    """Sub-types of user control messages."""

    STREAM_BEGIN = 0
    STREAM_EOF = 1
    STREAM_DRY = 2
    SET_BUFFER_LENGTH = 3
    STREAM_IS_RECORDED = 4
    PING_REQUEST = 6
    PING_RESPONSE = 7


def _require_control(raw: RawMessage, size: int, size_error: str) -> bytes:
    if raw.chunk_stream_id != CONTROL_CHUNK_STREAM_ID:
        raise MessageError("unexpected chunk stream ID")
    body = bytes(raw.body)
    if len(body) != size:
        raise MessageError(size_error)
    return body


def _control_raw(message_type: MessageType, body: bytes) -> RawMessage:
    return RawMessage(
        chunk_stream_id=CONTROL_CHUNK_STREAM_ID,
        type=message_type,
        body=body,
    )


def _u32(value: int) -> bytes:
    return (value & _U32).to_bytes(4, "big")


def _user_control_raw(control_type: UserControlType, *values: int) -> RawMessage:
    body = int(control_type).to_bytes(2, "big") + b"".join(_u32(v) for v in values)
    return _control_raw(MessageType.USER_CONTROL, body)


@dataclass
class _ValueMessage(Message):
    """A control message carrying a single 32-bit value."""

    value: int = 0

    _message_type = MessageType.SET_CHUNK_SIZE

    @classmethod
    def unmarshal(cls, raw: RawMessage) -> "_ValueMessage":
        body = _require_control(raw, 4, "unexpected body size")
        return cls(value=int.from_bytes(body, "big"))

    def marshal(self) -> RawMessage:
        return _control_raw(self._message_type, _u32(self.value))


@dataclass
class MsgAcknowledge(_ValueMessage):
    """Acknowledgement of the bytes received so far."""

    _message_type = MessageType.ACKNOWLEDGE


@dataclass
class MsgSetChunkSize(_ValueMessage):
    """Sets the maximum chunk size."""

    _message_type = MessageType.SET_CHUNK_SIZE


@dataclass
class MsgSetWindowAckSize(_ValueMessage):
    """Sets the window acknowledgement size."""

    _message_type = MessageType.SET_WINDOW_ACK_SIZE


@dataclass
class MsgSetPeerBandwidth(Message):
    """Sets the peer's output bandwidth."""

    value: int = 0
    type: int = 0

    @classmethod
    def unmarshal(cls, raw: RawMessage) -> "MsgSetPeerBandwidth":
        body = _require_control(raw, 5, "unexpected body size")
        return cls(value=int.from_bytes(body[0:4], "big"), type=body[4])

    def marshal(self) -> RawMessage:
        body = _u32(self.value) + bytes([self.type & 0xFF])
        return _control_raw(MessageType.SET_PEER_BANDWIDTH, body)


@dataclass
class _StreamEventMessage(Message):
    """A user control message carrying a stream ID."""

    stream_id: int = 0

    _control_type = UserControlType.STREAM_BEGIN

    @classmethod
    def unmarshal(cls, raw: RawMessage) -> "_StreamEventMessage":
        body = _require_control(raw, 6, "invalid body size")
        return cls(stream_id=int.from_bytes(body[2:6], "big"))

    def marshal(self) -> RawMessage:
        return _user_control_raw(self._control_type, self.stream_id)


@dataclass
class MsgUserControlStreamBegin(_StreamEventMessage):
    """Notifies that a stream became functional."""

    _control_type = UserControlType.STREAM_BEGIN


@dataclass
class MsgUserControlStreamEOF(_StreamEventMessage):
    """Notifies that playback of a stream has ended."""

    _control_type = UserControlType.STREAM_EOF


@dataclass
class MsgUserControlStreamDry(_StreamEventMessage):
    """Notifies that there is no more data on a stream."""

    _control_type = UserControlType.STREAM_DRY


@dataclass
class MsgUserControlStreamIsRecorded(_StreamEventMessage):
    """Notifies that a stream is a recorded stream."""

    _control_type = UserControlType.STREAM_IS_RECORDED


@dataclass
class _PingMessage(Message):
    """A user control ping message carrying a timestamp."""

    server_time: int = 0

    _control_type = UserControlType.PING_REQUEST

    @classmethod
    def unmarshal(cls, raw: RawMessage) -> "_PingMessage":
        body = _require_control(raw, 6, "invalid body size")
        return cls(server_time=int.from_bytes(body[2:6], "big"))

    def marshal(self) -> RawMessage:
        return _user_control_raw(self._control_type, self.server_time)


@dataclass
class MsgUserControlPingRequest(_PingMessage):
    """Asks the peer to answer with a ping response."""

    _control_type = UserControlType.PING_REQUEST


@dataclass
class MsgUserControlPingResponse(_PingMessage):
    """Answers a ping request."""

    _control_type = UserControlType.PING_RESPONSE


@dataclass
class MsgUserControlSetBufferLength(Message):
    """Tells the peer the buffer length, in milliseconds, used for a stream."""

    stream_id: int = 0
    buffer_length: int = 0

    @classmethod
    def unmarshal(cls, raw: RawMessage) -> "MsgUserControlSetBufferLength":
        body = _require_control(raw, 10, "invalid body size")
        return cls(
            stream_id=int.from_bytes(body[2:6], "big"),
            buffer_length=int.from_bytes(body[6:10], "big"),
        )

    def marshal(self) -> RawMessage:
        return _user_control_raw(
            UserControlType.SET_BUFFER_LENGTH, self.stream_id, self.buffer_length
        )