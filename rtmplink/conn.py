"""An RTMP connection: client and server setup, and track discovery."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Tuple, Union
from urllib.parse import SplitResult, urlsplit, urlunsplit

from .avmsg import (
    AAC_SEQHDR,
    AVC_SEQHDR,
    MSG_AUDIO_CHUNK_STREAM_ID,
    MSG_VIDEO_CHUNK_STREAM_ID,
    SOUND_16BIT,
    SOUND_44KHZ,
    SOUND_STEREO,
    MsgAudio,
    MsgCommandAMF0,
    MsgDataAMF0,
    MsgVideo,
)
from .bytecounter import CountingReadWriter
from .codecs import (
    CodecError,
    H264Format,
    H265Format,
    MPEG4AudioConfig,
    MPEG4AudioFormat,
    avcc_unmarshal,
)
from .controlmsg import (
    Message,
    MsgSetChunkSize,
    MsgSetPeerBandwidth,
    MsgSetWindowAckSize,
    MsgUserControlSetBufferLength,
    MsgUserControlStreamBegin,
    MsgUserControlStreamIsRecorded,
)
from .h264conf import H264Conf, H264ConfError
from .handshake import do_client, do_server
from .messageio import MessageReadWriter

CODEC_H264 = 7
CODEC_AAC = 10

_H265_VPS = 32
_H265_SPS = 33
_H265_PPS = 34

VideoFormat = Union[H264Format, H265Format]
URLLike = Union[str, SplitResult]


class ConnError(Exception):
    """Raised when the RTMP session fails."""


class _EmptyMetadata(ConnError):
    pass


def _as_split(url: URLLike) -> SplitResult:
    return url if isinstance(url, SplitResult) else urlsplit(url)


def _request_uri(u: SplitResult) -> str:
    uri = u.path or "/"
    if u.query:
        uri += "?" + u.query
    return uri


def split_path(url: URLLike) -> Tuple[str, str]:
    """Split a URL path into the application name and the stream name."""
    segs = _request_uri(_as_split(url)).split("/")
    app = stream = ""
    if len(segs) == 2:
        app = segs[1]
    elif len(segs) == 3:
        app, stream = segs[1], segs[2]
    elif len(segs) > 3:
        app = "/".join(segs[1:3])
        stream = "/".join(segs[3:])
    return app, stream


def get_tc_url(url: URLLike) -> str:
    """Build the tcUrl sent in the connect command."""
    u = _as_split(url)
    app, _ = split_path(u)
    return urlunsplit((u.scheme, u.netloc, "/", "", u.fragment)) + app


def create_url(tc_url: str, app: str, play: str) -> SplitResult:
    """Build the stream URL from tcUrl, application and stream names."""
    uri = "/" + app + "/" + play
    path, _, query = uri.partition("?")
    tu = urlsplit(tc_url)
    if not tu.netloc:
        raise ConnError("invalid host")
    if not tu.scheme:
        raise ConnError("invalid scheme")
    return SplitResult(tu.scheme, tu.netloc, path, query, "")


def _result_is_ok1(res: MsgCommandAMF0) -> bool:
    if len(res.arguments) < 2 or not isinstance(res.arguments[1], dict):
        return False
    return res.arguments[1].get("level") == "status"


def _result_is_ok2(res: MsgCommandAMF0) -> bool:
    if len(res.arguments) < 2:
        return False
    value = res.arguments[1]
    return isinstance(value, float) and value == 1


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _track_from_h264_config(data: bytes) -> H264Format:
    try:
        conf = H264Conf.unmarshal(data)
    except H264ConfError as exc:
        raise ConnError(f"unable to parse H264 config: {exc}") from exc
    return H264Format(payload_type=96, sps=conf.sps, pps=conf.pps, packetization_mode=1)


def _track_from_aac_config(data: bytes) -> MPEG4AudioFormat:
    try:
        config = MPEG4AudioConfig.unmarshal(data)
    except CodecError as exc:
        raise ConnError(str(exc)) from exc
    return MPEG4AudioFormat(
        payload_type=96, config=config, size_length=13, index_length=3, index_delta_length=3
    )


def _status(code: str, description: str) -> dict:
    return {"level": "status", "code": code, "description": description}


def _has_codec(md: dict, key: str, codec_id: int, fourcc: str, kind: str) -> bool:
    if key not in md:
        return False
    v = md[key]
    if _is_number(v):
        if v == 0:
            return False
        if v == codec_id:
            return True
    elif isinstance(v, str) and v == fourcc:
        return True
    raise ConnError(f"unsupported {kind} codec {v}")


class Conn:
    """An RTMP connection over a duplex byte stream."""

    def __init__(self, stream: Any) -> None:
        self._bc = CountingReadWriter(stream)
        self._mrw: Optional[MessageReadWriter] = None

    def bytes_received(self) -> int:
        """Number of bytes received."""
        return self._bc.reader.count

    def bytes_sent(self) -> int:
        """Number of bytes sent."""
        return self._bc.writer.count

    @property
    def _rw(self) -> MessageReadWriter:
        if self._mrw is None:
            raise ConnError("connection is not initialized")
        return self._mrw

    def read_message(self) -> Message:
        """Read a message."""
        return self._rw.read()

    def write_message(self, msg: Message) -> None:
        """Write a message."""
        self._rw.write(msg)

    def _read_command(self) -> MsgCommandAMF0:
        while True:
            msg = self.read_message()
            if isinstance(msg, MsgCommandAMF0):
                return msg

    def _read_command_result(
        self, command_id: int, name: str, is_valid: Callable[[MsgCommandAMF0], bool]
    ) -> None:
        while True:
            cmd = self._read_command()
            if cmd.command_id == command_id and cmd.name == name:
                if not is_valid(cmd):
                    raise ConnError("server refused connect request")
                return

    def _write_setup(self) -> None:
        self.write_message(MsgSetWindowAckSize(value=2500000))
        self.write_message(MsgSetPeerBandwidth(value=2500000, type=2))
        self.write_message(MsgSetChunkSize(value=65536))

    def initialize_client(self, url: URLLike, is_publishing: bool) -> None:
        """Perform the handshake and open a read or publish session."""
        u = _as_split(url)
        connect_path, action_path = split_path(u)

        do_client(self._bc, False)
        self._mrw = MessageReadWriter(self._bc, False)
        self._write_setup()

        self.write_message(MsgCommandAMF0(
            chunk_stream_id=3,
            name="connect",
            command_id=1,
            arguments=[{
                "app": connect_path,
                "flashVer": "LNX 9,0,124,2",
                "tcUrl": get_tc_url(u),
                "fpad": False,
                "capabilities": 15,
                "audioCodecs": 4071,
                "videoCodecs": 252,
                "videoFunction": 1,
            }],
        ))
        self._read_command_result(1, "_result", _result_is_ok1)

        if not is_publishing:
            self.write_message(MsgCommandAMF0(
                chunk_stream_id=3, name="createStream", command_id=2, arguments=[None]
            ))
            self._read_command_result(2, "_result", _result_is_ok2)
            self.write_message(MsgUserControlSetBufferLength(buffer_length=0x64))
            self.write_message(MsgCommandAMF0(
                chunk_stream_id=4,
                message_stream_id=0x1000000,
                name="play",
                command_id=3,
                arguments=[None, action_path],
            ))
            self._read_command_result(3, "onStatus", _result_is_ok1)
            return

        self.write_message(MsgCommandAMF0(
            chunk_stream_id=3, name="releaseStream", command_id=2, arguments=[None, action_path]
        ))
        self.write_message(MsgCommandAMF0(
            chunk_stream_id=3, name="FCPublish", command_id=3, arguments=[None, action_path]
        ))
        self.write_message(MsgCommandAMF0(
            chunk_stream_id=3, name="createStream", command_id=4, arguments=[None]
        ))
        self._read_command_result(4, "_result", _result_is_ok2)
        self.write_message(MsgCommandAMF0(
            chunk_stream_id=4,
            message_stream_id=0x1000000,
            name="publish",
            command_id=5,
            arguments=[None, action_path, connect_path],
        ))
        self._read_command_result(5, "onStatus", _result_is_ok1)

    def initialize_server(self) -> Tuple[SplitResult, bool]:
        """Perform the handshake and accept a session; return URL and publishing flag."""
        do_server(self._bc, False)
        self._mrw = MessageReadWriter(self._bc, False)

        cmd = self._read_command()
        if cmd.name != "connect":
            raise ConnError(f"unexpected command: {cmd}")
        if not cmd.arguments or not isinstance(cmd.arguments[0], dict):
            raise ConnError(f"invalid connect command: {cmd}")
        ma = cmd.arguments[0]

        connect_path = ma.get("app")
        if not isinstance(connect_path, str):
            raise ConnError(f"invalid connect command: {cmd}")

        tc_url = ma.get("tcUrl")
        if not isinstance(tc_url, str):
            tc_url = ma.get("tcurl")
            if not isinstance(tc_url, str):
                raise ConnError(f"invalid connect command: {cmd}")
        tc_url = tc_url.strip("'")

        self._write_setup()

        oe = ma.get("objectEncoding")
        oe = float(oe) if _is_number(oe) else 0.0

        self.write_message(MsgCommandAMF0(
            chunk_stream_id=cmd.chunk_stream_id,
            name="_result",
            command_id=cmd.command_id,
            arguments=[
                {"fmsVer": "LNX 9,0,124,2", "capabilities": 31.0},
                {
                    "level": "status",
                    "code": "NetConnection.Connect.Success",
                    "description": "Connection succeeded.",
                    "objectEncoding": oe,
                },
            ],
        ))

        while True:
            cmd = self._read_command()

            if cmd.name == "createStream":
                self.write_message(MsgCommandAMF0(
                    chunk_stream_id=cmd.chunk_stream_id,
                    name="_result",
                    command_id=cmd.command_id,
                    arguments=[None, 1.0],
                ))

            elif cmd.name in ("play", "publish"):
                if len(cmd.arguments) < 2 or not isinstance(cmd.arguments[1], str):
                    raise ConnError(f"invalid {cmd.name} command arguments")
                u = create_url(tc_url, connect_path, cmd.arguments[1])

                if cmd.name == "play":
                    self.write_message(MsgUserControlStreamIsRecorded(stream_id=1))
                    self.write_message(MsgUserControlStreamBegin(stream_id=1))
                    statuses = [
                        ("NetStream.Play.Reset", "play reset"),
                        ("NetStream.Play.Start", "play start"),
                        ("NetStream.Data.Start", "data start"),
                        ("NetStream.Play.PublishNotify", "publish notify"),
                    ]
                else:
                    statuses = [("NetStream.Publish.Start", "publish start")]

                for code, description in statuses:
                    self.write_message(MsgCommandAMF0(
                        chunk_stream_id=5,
                        message_stream_id=0x1000000,
                        name="onStatus",
                        command_id=cmd.command_id,
                        arguments=[None, _status(code, description)],
                    ))
                return u, cmd.name == "publish"

    def _read_tracks_from_metadata(
        self, payload: List[Any]
    ) -> Tuple[Optional[VideoFormat], Optional[MPEG4AudioFormat]]:
        if len(payload) != 1 or not isinstance(payload[0], dict):
            raise ConnError("invalid metadata")
        md = payload[0]

        has_video = _has_codec(md, "videocodecid", CODEC_H264, "avc1", "video")
        has_audio = _has_codec(md, "audiocodecid", CODEC_AAC, "mp4a", "audio")
        if not has_video and not has_audio:
            raise _EmptyMetadata("metadata is empty")

        video: Optional[VideoFormat] = None
        audio: Optional[MPEG4AudioFormat] = None

        while True:
            msg = self.read_message()

            if isinstance(msg, MsgVideo):
                if not has_video:
                    raise ConnError("unexpected video packet")
                if video is None:
                    if msg.h264_type == AVC_SEQHDR:
                        video = _track_from_h264_config(msg.payload)
                    elif msg.h264_type == 1 and msg.is_key_frame:
                        video = self._h265_from_nalus(msg.payload)

            elif isinstance(msg, MsgAudio):
                if not has_audio:
                    raise ConnError("unexpected audio packet")
                if audio is None and msg.aac_type == AAC_SEQHDR:
                    audio = _track_from_aac_config(msg.payload)

            if (not has_video or video is not None) and (not has_audio or audio is not None):
                return video, audio

    @staticmethod
    def _h265_from_nalus(payload: bytes) -> Optional[H265Format]:
        try:
            nalus = avcc_unmarshal(payload)
        except CodecError as exc:
            raise ConnError(str(exc)) from exc
        params = {}
        for nalu in nalus:
            typ = (nalu[0] >> 1) & 0x3F
            if typ in (_H265_VPS, _H265_SPS, _H265_PPS):
                params[typ] = bytes(nalu)
        if len(params) == 3:
            return H265Format(
                payload_type=96,
                vps=params[_H265_VPS],
                sps=params[_H265_SPS],
                pps=params[_H265_PPS],
            )
        return None

    def _read_tracks_from_messages(
        self, msg: Message
    ) -> Tuple[Optional[VideoFormat], Optional[MPEG4AudioFormat]]:
        start: Optional[int] = None
        video: Optional[VideoFormat] = None
        audio: Optional[MPEG4AudioFormat] = None

        # analyze one second of packets
        while True:
            if isinstance(msg, (MsgVideo, MsgAudio)):
                if start is None:
                    start = msg.dts
                if isinstance(msg, MsgVideo):
                    if msg.h264_type == AVC_SEQHDR and video is None:
                        video = _track_from_h264_config(msg.payload)
                        if audio is not None:
                            return video, audio
                elif msg.aac_type == AAC_SEQHDR and audio is None:
                    audio = _track_from_aac_config(msg.payload)
                    if video is not None:
                        return video, audio
                if msg.dts - start >= 1000:
                    break
            msg = self.read_message()

        if video is None and audio is None:
            raise ConnError("no tracks found")
        return video, audio

    def read_tracks(self) -> Tuple[Optional[VideoFormat], Optional[MPEG4AudioFormat]]:
        """Read the video and audio tracks announced by the publisher."""
        while True:
            msg = self.read_message()
            if isinstance(msg, MsgCommandAMF0) and msg.name == "onStatus":
                continue
            if (
                isinstance(msg, MsgDataAMF0)
                and msg.payload
                and msg.payload[0] == "|RtmpSampleAccess"
            ):
                continue
            break

        if isinstance(msg, MsgDataAMF0) and msg.payload:
            payload = msg.payload
            if payload[0] == "@setDataFrame":
                payload = payload[1:]
            if payload and payload[0] == "onMetaData":
                try:
                    return self._read_tracks_from_metadata(payload[1:])
                except _EmptyMetadata:
                    return self._read_tracks_from_messages(self.read_message())

        return self._read_tracks_from_messages(msg)

    def write_tracks(
        self, video_track: Optional[H264Format], audio_track: Optional[MPEG4AudioFormat]
    ) -> None:
        """Write the metadata and decoder configurations of the tracks."""
        self.write_message(MsgDataAMF0(
            chunk_stream_id=4,
            message_stream_id=0x1000000,
            payload=[
                "@setDataFrame",
                "onMetaData",
                {
                    "videodatarate": 0.0,
                    "videocodecid": float(CODEC_H264) if video_track is not None else 0.0,
                    "audiodatarate": 0.0,
                    "audiocodecid": float(CODEC_AAC) if audio_track is not None else 0.0,
                },
            ],
        ))

        # decoder config is sent only once SPS and PPS are known
        if video_track is not None and video_track.sps and video_track.pps:
            buf = H264Conf(sps=video_track.sps, pps=video_track.pps).marshal()
            self.write_message(MsgVideo(
                chunk_stream_id=MSG_VIDEO_CHUNK_STREAM_ID,
                message_stream_id=0x1000000,
                is_key_frame=True,
                h264_type=AVC_SEQHDR,
                payload=buf,
            ))

        if audio_track is not None:
            self.write_message(MsgAudio(
                chunk_stream_id=MSG_AUDIO_CHUNK_STREAM_ID,
                message_stream_id=0x1000000,
                rate=SOUND_44KHZ,
                depth=SOUND_16BIT,
                channels=SOUND_STEREO,
                aac_type=AAC_SEQHDR,
                payload=audio_track.config.marshal(),
            ))