import pytest

from rtmplink.h264conf import H264Conf, H264ConfError

DECODED = H264Conf(sps=bytes([0x45, 0x32, 0xA3, 0x08]), pps=bytes([0x45, 0x34]))
ENCODED = bytes([
    0x1, 0x32, 0xA3, 0x8, 0xFF, 0xE1, 0x0, 0x4, 0x45, 0x32, 0xA3, 0x8, 0x1, 0x0, 0x2, 0x45, 0x34,
])


def test_unmarshal():
    assert H264Conf.unmarshal(ENCODED) == DECODED


def test_marshal():
    assert DECODED.marshal() == ENCODED


def test_too_short():
    with pytest.raises(H264ConfError, match="invalid size 1"):
        H264Conf.unmarshal(ENCODED[:7])


def test_multiple_sps_unsupported():
    enc = bytearray(ENCODED)
    enc[5] = 0xE2
    with pytest.raises(H264ConfError, match="sps count"):
        H264Conf.unmarshal(bytes(enc))


def test_truncated_sps():
    with pytest.raises(H264ConfError, match="invalid size 2"):
        H264Conf.unmarshal(ENCODED[:10])


def test_missing_pps_header():
    with pytest.raises(H264ConfError, match="invalid size 3"):
        H264Conf.unmarshal(ENCODED[:13])


def test_multiple_pps_unsupported():
    enc = bytearray(ENCODED)
    enc[12] = 2
    with pytest.raises(H264ConfError, match="pps count"):
        H264Conf.unmarshal(bytes(enc))


def test_truncated_pps():
    with pytest.raises(H264ConfError, match="invalid size"):
        H264Conf.unmarshal(ENCODED[:-1])


def test_marshal_short_sps():
    with pytest.raises(H264ConfError):
        H264Conf(sps=b"\x67\x64", pps=b"\x68").marshal()