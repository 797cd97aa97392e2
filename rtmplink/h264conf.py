"""H264 decoder configuration record as carried in RTMP."""

from __future__ import annotations

from dataclasses import dataclass


class H264ConfError(ValueError):
    """Raised when an H264 configuration cannot be decoded or encoded."""


@dataclass
class H264Conf:
    """An H264 configuration holding one SPS and one PPS."""

    sps: bytes = b""
    pps: bytes = b""

    @classmethod
    def unmarshal(cls, buf: bytes) -> "H264Conf":
        if len(buf) < 8:
            raise H264ConfError("invalid size 1")

        pos = 5
        sps_count = buf[pos] & 0x1F
        pos += 1
        if sps_count != 1:
            raise H264ConfError("sps count != 1 is unsupported")

        sps_len = int.from_bytes(buf[pos:pos + 2], "big")
        pos += 2
        if len(buf) - pos < sps_len:
            raise H264ConfError("invalid size 2")
        sps = bytes(buf[pos:pos + sps_len])
        pos += sps_len

        if len(buf) - pos < 3:
            raise H264ConfError("invalid size 3")

        pps_count = buf[pos]
        pos += 1
        if pps_count != 1:
            raise H264ConfError("pps count != 1 is unsupported")

        pps_len = int.from_bytes(buf[pos:pos + 2], "big")
        pos += 2
        if len(buf) - pos < pps_len:
            raise H264ConfError("invalid size")
        pps = bytes(buf[pos:pos + pps_len])

        return cls(sps=sps, pps=pps)

    def marshal(self) -> bytes:
        if len(self.sps) < 4:
            raise H264ConfError("SPS is too short")
        return (
            bytes([1, self.sps[1], self.sps[2], self.sps[3], 3 | 0xFC, 1 | 0xE0])
            + (len(self.sps) & 0xFFFF).to_bytes(2, "big")
            + bytes(self.sps)
            + b"\x01"
            + (len(self.pps) & 0xFFFF).to_bytes(2, "big")
            + bytes(self.pps)
        )