"""Reading and writing decoded RTMP messages."""

from __future__ import annotations

from contextlib import suppress
from typing import Callable, Dict, Optional, Type

from .avmsg import MsgAudio, MsgCommandAMF0, MsgDataAMF0, MsgVideo
from .bytecounter import CountingReader, CountingReadWriter, CountingWriter
from .chunk import MessageType
from .controlmsg import (
    Message,
    MessageError,
    MsgAcknowledge,
    MsgSetChunkSize,
    MsgSetPeerBandwidth,
    MsgSetWindowAckSize,
    MsgUserControlPingRequest,
    MsgUserControlPingResponse,
    MsgUserControlSetBufferLength,
    MsgUserControlStreamBegin,
    MsgUserControlStreamDry,
    MsgUserControlStreamEOF,
    MsgUserControlStreamIsRecorded,
    UserControlType,
)
from .rawmessage import RawMessage, RawMessageError, RawMessageReader, RawMessageWriter

_MESSAGE_CLASSES: Dict[int, Type[Message]] = {
    MessageType.SET_CHUNK_SIZE: MsgSetChunkSize,
    MessageType.ACKNOWLEDGE: MsgAcknowledge,
    MessageType.SET_WINDOW_ACK_SIZE: MsgSetWindowAckSize,
    MessageType.SET_PEER_BANDWIDTH: MsgSetPeerBandwidth,
    MessageType.COMMAND_AMF0: MsgCommandAMF0,
    MessageType.DATA_AMF0: MsgDataAMF0,
    MessageType.AUDIO: MsgAudio,
    MessageType.VIDEO: MsgVideo,
}

_USER_CONTROL_CLASSES: Dict[int, Type[Message]] = {
    UserControlType.STREAM_BEGIN: MsgUserControlStreamBegin,
    UserControlType.STREAM_EOF: MsgUserControlStreamEOF,
    UserControlType.STREAM_DRY: MsgUserControlStreamDry,
    UserControlType.SET_BUFFER_LENGTH: MsgUserControlSetBufferLength,
    UserControlType.STREAM_IS_RECORDED: MsgUserControlStreamIsRecorded,
    UserControlType.PING_REQUEST: MsgUserControlPingRequest,
    UserControlType.PING_RESPONSE: MsgUserControlPingResponse,
}


def _message_class(raw: RawMessage) -> Type[Message]:
    if raw.type == MessageType.USER_CONTROL:
        body = bytes(raw.body)
        if len(body) < 2:
            raise MessageError("invalid body size")
        sub_type = int.from_bytes(body[0:2], "big")
        try:
            return _USER_CONTROL_CLASSES[sub_type]
        except KeyError:
            raise MessageError("invalid user control type") from None

    try:
        return _MESSAGE_CLASSES[raw.type]
    except KeyError:
        raise MessageError(f"unhandled message type ({int(raw.type)})") from None


def decode_message(raw: RawMessage) -> Message:
    """Decode a raw message into the matching message class."""
    return _message_class(raw).unmarshal(raw)


class MessageReader:
    """Reads messages and applies chunk and window size changes."""

    def __init__(
        self,
        reader: CountingReader,
        on_ack_needed: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._raw = RawMessageReader(reader, on_ack_needed)

    def read(self) -> Message:
        """Read and decode the next message."""
        msg = decode_message(self._raw.read())

        if isinstance(msg, MsgSetChunkSize):
            self._raw.chunk_size = msg.value
        elif isinstance(msg, MsgSetWindowAckSize):
            self._raw.window_ack_size = msg.value

        return msg


class MessageWriter:
    """Writes messages and applies chunk and window size changes."""

    def __init__(self, writer: CountingWriter, check_acknowledge: bool = False) -> None:
        self._raw = RawMessageWriter(writer, check_acknowledge)

    @property
    def acknowledge_value(self) -> int:
        """Value of the last acknowledgement received from the peer."""
        return self._raw.ack_value

    @acknowledge_value.setter
    def acknowledge_value(self, value: int) -> None:
        self._raw.ack_value = value

    def write(self, msg: Message) -> None:
        """Encode and write a message."""
        self._raw.write(msg.marshal())

        if isinstance(msg, MsgSetChunkSize):
            self._raw.chunk_size = msg.value
        elif isinstance(msg, MsgSetWindowAckSize):
            self._raw.window_ack_size = msg.value


class MessageReadWriter:
    """Reads and writes messages, answering pings and sending acknowledgements."""

    def __init__(self, stream: CountingReadWriter, check_acknowledge: bool = False) -> None:
        self.writer = MessageWriter(stream.writer, check_acknowledge)
        self.reader = MessageReader(
            stream.reader,
            lambda count: self.writer.write(MsgAcknowledge(value=count)),
        )

    def read(self) -> Message:
        """Read the next message."""
        msg = self.reader.read()

        if isinstance(msg, MsgAcknowledge):
            self.writer.acknowledge_value = msg.value
        elif isinstance(msg, MsgUserControlPingRequest):
            with suppress(OSError, RawMessageError):
                self.writer.write(MsgUserControlPingResponse(server_time=msg.server_time))

        return msg

    def write(self, msg: Message) -> None:
        """Write a message."""
        self.writer.write(msg)