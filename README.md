# rtmplink

`rtmplink` implements both sides of an RTMP connection over any duplex byte
stream. It covers the handshake, chunk framing, the control, audio, video and
AMF0 messages, and the track negotiation a live streaming client or server
needs. It uses only the standard library.

## Installation

```
pip install .
```

## Modules

| Module | Contents |
| --- | --- |
| `rtmplink.bytecounter` | `CountingReader`, `CountingWriter` and `CountingReadWriter` wrap a stream and count the bytes that pass through it (`count`) |
| `rtmplink.handshake` | `do_client` and `do_server` perform the handshake; `C0S0`, `C1S1` and `C2S2` are its packets; failures raise `HandshakeError` |
| `rtmplink.chunk` | `Chunk0` to `Chunk3`, `MessageType` and `read_exact` |
| `rtmplink.rawmessage` | `RawMessage`, `RawMessageReader` and `RawMessageWriter`, which split messages into chunks and reassemble them; errors are `RawMessageError` and `AcknowledgeError` |
| `rtmplink.amf0` | `encode_value`, `encode_values` and `decode_values` for AMF0; `Undefined`; `AMFError` |
| `rtmplink.controlmsg` | `Message`, `UserControlType`, and the control messages `MsgAcknowledge`, `MsgSetChunkSize`, `MsgSetWindowAckSize`, `MsgSetPeerBandwidth` and the `MsgUserControl...` family; `MessageError` |
| `rtmplink.avmsg` | `MsgAudio`, `MsgVideo`, `MsgCommandAMF0` and `MsgDataAMF0`, with FLV flag constants such as `AVC_SEQHDR` and `SOUND_44KHZ` |
| `rtmplink.messageio` | `decode_message`, `MessageReader`, `MessageWriter` and `MessageReadWriter` |
| `rtmplink.h264conf` | `H264Conf`, the AVC decoder configuration record with one SPS and one PPS; `H264ConfError` |
| `rtmplink.codecs` | `H264Format`, `H265Format`, `MPEG4AudioConfig`, `MPEG4AudioFormat`, `avcc_marshal`, `avcc_unmarshal`; `CodecError` |
| `rtmplink.conn` | `Conn`, plus the URL helpers `split_path`, `get_tc_url` and `create_url`; `ConnError` |

Timestamps (`RawMessage.timestamp`, `MsgAudio.dts`, `MsgVideo.dts`,
`MsgVideo.pts_delta`) are integers in milliseconds.

## Accepting a publisher or reader

`Conn` needs an object with `read` and `write`. An unbuffered socket file
works:

```python
import socket

from rtmplink.conn import Conn

with socket.create_server(("127.0.0.1", 1935)) as server:
    sock, _ = server.accept()
    with sock, sock.makefile("rwb", buffering=0) as stream:
        conn = Conn(stream)
        url, is_publishing = conn.initialize_server()
        if is_publishing:
            video_track, audio_track = conn.read_tracks()
            while True:
                msg = conn.read_message()
                ...
```

`initialize_server` returns the requested stream URL as a
`urllib.parse.SplitResult` and whether the peer publishes or plays.
`read_tracks` uses the `onMetaData` announcement when there is one and then
the decoder configuration packets; without usable metadata it looks at up to
one second of audio and video packets. It returns the video track
(`H264Format` or `H265Format`) and the audio track (`MPEG4AudioFormat`);
either may be `None`.

## Connecting to a server

```python
from rtmplink.codecs import H264Format, MPEG4AudioConfig, MPEG4AudioFormat
from rtmplink.conn import Conn

conn = Conn(stream)
conn.initialize_client("rtmp://127.0.0.1:1935/live/mystream", is_publishing=True)
conn.write_tracks(
    H264Format(sps=sps, pps=pps),
    MPEG4AudioFormat(config=MPEG4AudioConfig(type=2, sample_rate=44100, channel_count=2)),
)
```

`initialize_client` also accepts a `SplitResult`. With `is_publishing=False`
it sends `createStream` and `play` instead. `write_tracks` sends the metadata,
then the H264 decoder configuration if both SPS and PPS are set, then the AAC
configuration. `bytes_received()` and `bytes_sent()` report the traffic so far.

`MessageReadWriter`, which `Conn` uses, answers ping requests, records
acknowledgements from the peer and sends acknowledgements when the window
size is exceeded. `Conn` performs the handshake without checking signatures.

## Errors

Protocol violations raise `ConnError`, `HandshakeError`, `RawMessageError`
(and its subclass `AcknowledgeError`) or `MessageError`. A peer that closes
the connection raises `EOFError`.

## What the package does not do

- It has no command-line program and no listening server: accepting sockets,
  routing streams between publishers and readers, and serving other protocols
  are left to the caller.
- Audio messages must be AAC and video messages H264 framing; other codecs
  raise `MessageError`. H265 is recognised only from parameter sets carried
  in a key frame.
- AMF3 commands and data, and abort messages, are not decoded
  (`MessageError: unhandled message type`).

## Running the tests

```
pip install ".[test]"
pytest
```