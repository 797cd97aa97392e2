import io
import os
import socket
from concurrent.futures import ThreadPoolExecutor

import pytest

from rtmplink.bytecounter import CountingReadWriter
from rtmplink.handshake import (
    C0S0,
    C1S1,
    C2S2,
    HandshakeError,
    do_client,
    do_server,
)

PATTERN = bytes([0x01, 0x02, 0x03, 0x04])

C1_ENC = bytes([
    0x19, 0xF1, 0x27, 0xA3, 0x00, 0x00, 0x00, 0x00,
    0x01, 0x02, 0x03, 0x04, 0x01, 0x02, 0x03, 0x04,
    0x01, 0x02, 0x03, 0x04, 0x01, 0x02, 0x2D, 0x0A,
    0x37, 0x6F, 0x63, 0x2E, 0xA0, 0x21, 0xA0, 0xA4,
    0x81, 0xB1, 0x50, 0x21, 0x5A, 0x6D, 0x81, 0xAD,
    0xF8, 0x44, 0x69, 0x13, 0xCC, 0x02, 0x8C, 0xD4,
    0x64, 0x43, 0xC9, 0x9F, 0xCF, 0xC6, 0x03, 0x04,
]) + PATTERN * 370

S1_ENC = bytes([
    0x19, 0xF1, 0x27, 0xA3, 0x00, 0x00, 0x00, 0x00,
    0x01, 0x02, 0x03, 0x04, 0x01, 0x02, 0x03, 0x04,
    0x01, 0x02, 0x03, 0x04, 0x01, 0x02, 0x95, 0xC1,
    0xB6, 0x2C, 0x99, 0xBE, 0xA0, 0x0C, 0x07, 0x98,
    0xB0, 0xF1, 0xBE, 0x54, 0x50, 0x63, 0xA1, 0x25,
    0x1C, 0x9A, 0xCD, 0x12, 0x10, 0x98, 0x74, 0x8B,
    0x18, 0x66, 0x8D, 0xEF, 0xCF, 0x22, 0x03, 0x04,
]) + PATTERN * 370

C1_DIGEST = bytes([
    0x3F, 0xD0, 0xB1, 0xDF, 0xED, 0x6C, 0x9B, 0xC3,
    0x73, 0x68, 0xE2, 0x47, 0x92, 0x59, 0x32, 0x9A,
    0x3A, 0xC9, 0x1E, 0xEB, 0xFC, 0xAD, 0x8E, 0x9D,
    0x4E, 0xF4, 0x30, 0xB1, 0x9A, 0xC9, 0x15, 0x99,
])

S1_DIGEST = bytes([
    0x0E, 0x8F, 0x96, 0x19, 0x19, 0xE6, 0xB7, 0xF2,
    0xAC, 0x9A, 0xC8, 0x7E, 0x6E, 0xE9, 0xD4, 0x72,
    0xED, 0x82, 0x87, 0xF1, 0xFA, 0xBD, 0x93, 0xB8,
    0x7C, 0x48, 0x85, 0x03, 0x01, 0x7B, 0x54, 0xBE,
])

C2S2_TAIL = bytes([
    0x96, 0x07, 0x2F, 0xE4, 0x04, 0xC5, 0x84, 0xA2,
    0x21, 0x05, 0xCC, 0xB5, 0x7F, 0x93, 0x02, 0x14,
    0xAF, 0xB0, 0x76, 0x75, 0xFD, 0x82, 0x29, 0xBE,
    0xB9, 0x27, 0x9D, 0x4B, 0x0C, 0x81, 0x13, 0xEC,
])
C2S2_ENC = bytes([0x19, 0xF1, 0x27, 0xA3, 0x00, 0x78, 0x72, 0x26]) + PATTERN * 374 + C2S2_TAIL


def test_c0s0_read():
    stream = io.BytesIO(b"\x03")
    C0S0.read(stream)
    assert stream.tell() == 1


def test_c0s0_write():
    buf = io.BytesIO()
    C0S0.write(buf)
    assert buf.getvalue() == b"\x03"


def test_c0s0_wrong_version():
    with pytest.raises(HandshakeError, match="invalid rtmp version"):
        C0S0.read(io.BytesIO(b"\x06"))


@pytest.mark.parametrize(
    "is_c1, enc, digest",
    [(True, C1_ENC, C1_DIGEST), (False, S1_ENC, S1_DIGEST)],
)
def test_c1s1_read(is_c1, enc, digest):
    packet = C1S1.read(io.BytesIO(enc), is_c1, True)
    assert packet == C1S1(time=435234723, random=enc[8:], digest=digest)


@pytest.mark.parametrize(
    "is_c1, enc, digest",
    [(True, C1_ENC, C1_DIGEST), (False, S1_ENC, S1_DIGEST)],
)
def test_c1s1_write(is_c1, enc, digest):
    packet = C1S1(time=435234723, random=PATTERN * 382, digest=C1_DIGEST)
    buf = io.BytesIO()
    packet.write(buf, is_c1)
    assert buf.getvalue() == enc
    assert packet.digest == digest


def test_c1s1_invalid_signature():
    data = bytes(8) + PATTERN * 382
    with pytest.raises(HandshakeError, match="C1/S1 signature"):
        C1S1.read(io.BytesIO(data), True, True)


def test_c1s1_invalid_signature_tolerated():
    data = bytes(8) + PATTERN * 382
    packet = C1S1.read(io.BytesIO(data), True, False)
    assert packet.digest is None
    assert packet.random == PATTERN * 382


def test_c2s2_read():
    packet = C2S2.read(io.BytesIO(C2S2_ENC), C1_DIGEST, True)
    assert packet == C2S2(
        time=435234723,
        time2=7893542,
        random=PATTERN * 372 + PATTERN * 2 + C2S2_TAIL,
        digest=C1_DIGEST,
    )


def test_c2s2_write():
    packet = C2S2(time=435234723, time2=7893542, random=PATTERN * 382, digest=C1_DIGEST)
    buf = io.BytesIO()
    packet.write(buf)
    assert buf.getvalue() == C2S2_ENC


def test_c2s2_invalid_signature():
    with pytest.raises(HandshakeError, match="C2/S2 signature"):
        C2S2.read(io.BytesIO(C2S2_ENC), S1_DIGEST, True)


def test_c2s2_truncated():
    with pytest.raises(EOFError):
        C2S2.read(io.BytesIO(C2S2_ENC[:100]), None, False)


def _socket_pair():
    a, b = socket.socketpair()
    a.settimeout(10)
    b.settimeout(10)
    return a, b


def test_handshake():
    server_sock, client_sock = _socket_pair()
    with server_sock, client_sock:
        server_file = server_sock.makefile("rwb", buffering=0)
        client_file = client_sock.makefile("rwb", buffering=0)
        with server_file, client_file, ThreadPoolExecutor(max_workers=1) as pool:
            server_rw = CountingReadWriter(server_file)
            future = pool.submit(do_server, server_rw, True)
            client_rw = CountingReadWriter(client_file)
            do_client(client_rw, True)
            future.result(timeout=10)

    assert client_rw.writer.count == 1 + 1536 + 1536
    assert client_rw.reader.count == 1 + 1536 + 1536
    assert server_rw.reader.count == 1 + 1536 + 1536
    assert server_rw.writer.count == 1 + 1536 + 1536


def test_handshake_fallback():
    # when the C1 signature is invalid, S2 echoes C1
    server_sock, client_sock = _socket_pair()
    with server_sock, client_sock:
        server_file = server_sock.makefile("rwb", buffering=0)
        client_file = client_sock.makefile("rwb", buffering=0)
        with server_file, client_file, ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(do_server, server_file, False)

            C0S0.write(client_file)
            c1 = bytes(8) + os.urandom(1528)
            client_file.write(c1)

            C0S0.read(client_file)
            s1 = C1S1.read(client_file, False, False)
            s2 = C2S2.read(client_file, None, False)

            C2S2(time=s1.time, random=s1.random, digest=s1.digest).write(client_file)
            future.result(timeout=10)

    assert s2.random == c1[8:]
    assert s1.digest is not None