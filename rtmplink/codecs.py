"""Track formats and codec helpers used when describing RTMP streams."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List

_SAMPLE_RATES = (
    96000, 88200, 64000, 48000, 44100, 32000, 24000,
    22050, 16000, 12000, 11025, 8000, 7350,
)


class CodecError(ValueError):
    """Raised when codec data cannot be decoded or encoded."""


@dataclass
class H264Format:
    """An H264 video track."""

    payload_type: int = 96
    sps: bytes = b""
    pps: bytes = b""
    packetization_mode: int = 1


@dataclass
class H265Format:
    """An H265 video track."""

    payload_type: int = 96
    vps: bytes = b""
    sps: bytes = b""
    pps: bytes = b""


class _BitReader:
    def __init__(self, data: bytes) -> None:
        self._value = int.from_bytes(data, "big")
        self._total = len(data) * 8
        self._pos = 0

    def read(self, count: int) -> int:
        if self._pos + count > self._total:
            raise CodecError("not enough bits")
        shift = self._total - self._pos - count
        self._pos += count
        return (self._value >> shift) & ((1 << count) - 1)


class _BitWriter:
    def __init__(self) -> None:
        self._value = 0
        self._bits = 0

    def write(self, value: int, count: int) -> None:
        self._value = (self._value << count) | (value & ((1 << count) - 1))
        self._bits += count

    def to_bytes(self) -> bytes:
        pad = (-self._bits) % 8
        total = self._bits + pad
        return (self._value << pad).to_bytes(total // 8, "big")


@dataclass
class MPEG4AudioConfig:
    """An MPEG-4 AudioSpecificConfig."""

    type: int = 2
    sample_rate: int = 44100
    channel_count: int = 2

    @classmethod
    def unmarshal(cls, data: bytes) -> "MPEG4AudioConfig":
        bits = _BitReader(bytes(data))
        object_type = bits.read(5)
        if object_type == 31:
            object_type = 32 + bits.read(6)
        if object_type == 0:
            raise CodecError("invalid audio object type")

        index = bits.read(4)
        if index == 15:
            sample_rate = bits.read(24)
        elif index < len(_SAMPLE_RATES):
            sample_rate = _SAMPLE_RATES[index]
        else:
            raise CodecError(f"invalid sample rate index ({index})")

        channel_config = bits.read(4)
        if channel_config == 0 or channel_config > 7:
            raise CodecError(f"unsupported channel configuration ({channel_config})")
        channel_count = 8 if channel_config == 7 else channel_config

        return cls(type=object_type, sample_rate=sample_rate, channel_count=channel_count)

    def marshal(self) -> bytes:
        bits = _BitWriter()
        if self.type <= 0:
            raise CodecError("invalid audio object type")
        if self.type < 31:
            bits.write(self.type, 5)
        else:
            bits.write(31, 5)
            bits.write(self.type - 32, 6)

        if self.sample_rate in _SAMPLE_RATES:
            bits.write(_SAMPLE_RATES.index(self.sample_rate), 4)
        else:
            bits.write(15, 4)
            bits.write(self.sample_rate, 24)

        if self.channel_count == 8:
            bits.write(7, 4)
        elif 1 <= self.channel_count <= 6:
            bits.write(self.channel_count, 4)
        else:
            raise CodecError(f"unsupported channel count ({self.channel_count})")

        bits.write(0, 3)  # frame length, core coder, extension flags
        return bits.to_bytes()


@dataclass
class MPEG4AudioFormat:
    """An MPEG-4 audio track."""

    payload_type: int = 96
    config: MPEG4AudioConfig = field(default_factory=MPEG4AudioConfig)
    size_length: int = 13
    index_length: int = 3
    index_delta_length: int = 3


def avcc_unmarshal(data: bytes) -> List[bytes]:
    """Split length-prefixed NAL units."""
    data = bytes(data)
    if not data:
        raise CodecError("empty AVCC data")
    nalus = []
    pos = 0
    while pos < len(data):
        if len(data) - pos < 4:
            raise CodecError("invalid AVCC length prefix")
        size = int.from_bytes(data[pos:pos + 4], "big")
        pos += 4
        if size == 0 or len(data) - pos < size:
            raise CodecError("invalid NALU size")
        nalus.append(data[pos:pos + size])
        pos += size
    return nalus


def avcc_marshal(nalus: Iterable[bytes]) -> bytes:
    """Join NAL units with 4-byte length prefixes."""
    return b"".join(len(n).to_bytes(4, "big") + bytes(n) for n in nalus)