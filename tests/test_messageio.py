import io

import pytest

from rtmplink.avmsg import (
    AAC_RAW,
    AVC_SEQHDR,
    SOUND_16BIT,
    SOUND_44KHZ,
    SOUND_STEREO,
    MsgAudio,
    MsgCommandAMF0,
    MsgDataAMF0,
    MsgVideo,
)
from rtmplink.bytecounter import CountingReader, CountingReadWriter, CountingWriter
from rtmplink.chunk import MessageType
from rtmplink.controlmsg import (
    MessageError,
    MsgAcknowledge,
    MsgSetChunkSize,
    MsgSetWindowAckSize,
    MsgUserControlPingRequest,
    MsgUserControlPingResponse,
    MsgUserControlSetBufferLength,
    MsgUserControlStreamBegin,
    MsgUserControlStreamDry,
    MsgUserControlStreamEOF,
    MsgUserControlStreamIsRecorded,
)
from rtmplink.messageio import (
    MessageReader,
    MessageReadWriter,
    MessageWriter,
    decode_message,
)
from rtmplink.rawmessage import RawMessage


def _hex(text):
    return bytes.fromhex(text)


_SET_CHUNK_SIZE_10000 = _hex("02 000000 000004 01 00000000 00002710")

CASES = [
    (
        "acknowledge",
        MsgAcknowledge(value=45953968),
        _hex("02 000000 000004 03 00000000 02bd33b0"),
    ),
    (
        "audio",
        MsgAudio(
            chunk_stream_id=7,
            dts=6013806,
            message_stream_id=4534543,
            rate=SOUND_44KHZ,
            depth=SOUND_16BIT,
            channels=SOUND_STEREO,
            aac_type=AAC_RAW,
            payload=_hex("5ac07740"),
        ),
        _hex("07 5bc36e 000006 08 0045310f af01 5ac07740"),
    ),
    (
        "command amf0",
        MsgCommandAMF0(
            chunk_stream_id=3,
            message_stream_id=345243,
            name="i8yythrergre",
            command_id=56456,
            arguments=[{"k1": "v1", "k2": "v2"}, None],
        ),
        _hex(
            "03 000000 00002f 14 0005449b"
            " 02000c6938797974687265726772 65"
            " 0040eb910000000000"
            " 03 00026b31 02000276 31 00026b32 02000276 32 000009"
            " 05"
        ),
    ),
    (
        "data amf0",
        MsgDataAMF0(
            chunk_stream_id=3,
            message_stream_id=345243,
            payload=[234.0, "string", None],
        ),
        _hex(
            "03 000000 000013 12 0005449b"
            " 00406d400000000000"
            " 020006737472696e67"
            " 05"
        ),
    ),
    ("set chunk size", MsgSetChunkSize(value=10000), _SET_CHUNK_SIZE_10000),
    ("set peer bandwidth", MsgSetChunkSize(value=10000), _SET_CHUNK_SIZE_10000),
    ("set window ack size", MsgSetChunkSize(value=10000), _SET_CHUNK_SIZE_10000),
    (
        "user control ping request",
        MsgUserControlPingRequest(server_time=569834435),
        _hex("02 000000 000006 04 00000000 0006 21f6fbc3"),
    ),
    (
        "user control ping response",
        MsgUserControlPingResponse(server_time=569834435),
        _hex("02 000000 000006 04 00000000 0007 21f6fbc3"),
    ),
    (
        "user control set buffer length",
        MsgUserControlSetBufferLength(stream_id=35534, buffer_length=235345),
        _hex("02 000000 00000a 04 00000000 0003 00008ace 00039751"),
    ),
    (
        "user control stream begin",
        MsgUserControlStreamBegin(stream_id=35534),
        _hex("02 000000 000006 04 00000000 0000 00008ace"),
    ),
    (
        "user control stream dry",
        MsgUserControlStreamDry(stream_id=35534),
        _hex("02 000000 000006 04 00000000 0002 00008ace"),
    ),
    (
        "user control stream eof",
        MsgUserControlStreamEOF(stream_id=35534),
        _hex("02 000000 000006 04 00000000 0001 00008ace"),
    ),
    (
        "user control stream is recorded",
        MsgUserControlStreamIsRecorded(stream_id=35534),
        _hex("02 000000 000006 04 00000000 0004 00008ace"),
    ),
    (
        "video",
        MsgVideo(
            chunk_stream_id=6,
            dts=2543534,
            message_stream_id=0x1000000,
            is_key_frame=True,
            h264_type=AVC_SEQHDR,
            pts_delta=10,
            payload=_hex("010203"),
        ),
        _hex("06 26cfae 000008 09 01000000 17 00 00000a 010203"),
    ),
]

IDS = [name for name, _, _ in CASES]


@pytest.mark.parametrize("name,dec,enc", CASES, ids=IDS)
def test_reader(name, dec, enc):
    r = MessageReader(CountingReader(io.BytesIO(enc)))
    assert r.read() == dec


@pytest.mark.parametrize("name,dec,enc", CASES, ids=IDS)
def test_writer(name, dec, enc):
    buf = io.BytesIO()
    w = MessageWriter(CountingWriter(buf), True)
    w.write(dec)
    assert buf.getvalue() == enc


class _Pipe:
    def __init__(self):
        self._data = bytearray()

    def write(self, data):
        self._data += data
        return len(data)

    def read(self, size=-1):
        if size < 0:
            size = len(self._data)
        out = bytes(self._data[:size])
        del self._data[:size]
        return out


class _Duplex:
    def __init__(self, reader, writer):
        self._reader = reader
        self._writer = writer

    def read(self, size=-1):
        return self._reader.read(size)

    def write(self, data):
        return self._writer.write(data)


def _pair():
    buf1 = _Pipe()
    buf2 = _Pipe()
    bc1 = CountingReadWriter(_Duplex(buf2, buf1))
    bc2 = CountingReadWriter(_Duplex(buf1, buf2))
    return (
        MessageReadWriter(bc1, True),
        MessageReadWriter(bc2, True),
        bc1,
        bc2,
    )


def test_read_writer_acknowledge():
    rw1, rw2, _, _ = _pair()
    rw1.write(MsgAcknowledge(value=7863534))
    msg = rw2.read()
    assert msg == MsgAcknowledge(value=7863534)
    assert rw2.writer.acknowledge_value == 7863534


def test_read_writer_ping():
    rw1, rw2, _, _ = _pair()
    rw1.write(MsgUserControlPingRequest(server_time=143424312))
    assert rw2.read() == MsgUserControlPingRequest(server_time=143424312)
    assert rw1.read() == MsgUserControlPingResponse(server_time=143424312)


def test_read_writer_sends_acknowledge_after_window():
    rw1, rw2, _, bc2 = _pair()
    rw1.write(MsgSetWindowAckSize(value=100))
    data = MsgDataAMF0(chunk_stream_id=4, payload=["x" * 197])
    rw1.write(data)

    assert rw2.read() == MsgSetWindowAckSize(value=100)
    assert rw2.read() == data

    ack = rw1.read()
    assert isinstance(ack, MsgAcknowledge)
    assert 100 < ack.value <= bc2.reader.count
    assert rw1.writer.acknowledge_value == ack.value


def test_chunk_size_change_applies_to_both_sides():
    rw1, rw2, _, _ = _pair()
    rw1.write(MsgSetChunkSize(value=65536))
    data = MsgDataAMF0(chunk_stream_id=4, message_stream_id=1, payload=["y" * 1000])
    rw1.write(data)
    assert rw2.read() == MsgSetChunkSize(value=65536)
    assert rw2.read() == data


def test_decode_unhandled_type():
    raw = RawMessage(chunk_stream_id=2, type=MessageType.ABORT_MESSAGE, body=b"\x00\x00\x00\x01")
    with pytest.raises(MessageError, match="unhandled message type"):
        decode_message(raw)


def test_decode_invalid_user_control_type():
    raw = RawMessage(chunk_stream_id=2, type=MessageType.USER_CONTROL, body=b"\x00\x05\x00\x00\x00\x00")
    with pytest.raises(MessageError, match="invalid user control type"):
        decode_message(raw)


def test_decode_short_user_control():
    raw = RawMessage(chunk_stream_id=2, type=MessageType.USER_CONTROL, body=b"\x00")
    with pytest.raises(MessageError, match="invalid body size"):
        decode_message(raw)


def test_decode_dispatches_on_type():
    raw = MsgUserControlStreamBegin(stream_id=1).marshal()
    assert decode_message(raw) == MsgUserControlStreamBegin(stream_id=1)