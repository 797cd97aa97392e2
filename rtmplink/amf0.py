"""AMF0 value encoding and decoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, List, Mapping

_NUMBER = 0x00
_BOOLEAN = 0x01
_STRING = 0x02
_OBJECT = 0x03
_NULL = 0x05
_UNDEFINED = 0x06
_ECMA_ARRAY = 0x08
_OBJECT_END = 0x09
_STRICT_ARRAY = 0x0A
_DATE = 0x0B
_LONG_STRING = 0x0C

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class AMFError(ValueError):
    """Raised when AMF0 data cannot be encoded or decoded."""


@dataclass(frozen=True)
class Undefined:
    """The AMF0 undefined value."""


def _encode_string_body(text: str) -> bytes:
    raw = text.encode("utf-8")
    if len(raw) > 0xFFFF:
        raise AMFError("string too long for a short AMF0 string")
    return struct.pack(">H", len(raw)) + raw


def _encode_pairs(mapping: Mapping[Any, Any]) -> bytes:
    out = bytearray()
    for key, value in mapping.items():
        if not isinstance(key, str):
            raise AMFError(f"object key must be a string, not {type(key).__name__}")
        out += _encode_string_body(key)
        out += encode_value(value)
    out += b"\x00\x00" + bytes([_OBJECT_END])
    return bytes(out)


def encode_value(value: Any) -> bytes:
    """Encode one Python value as AMF0."""
    if value is None:
        return bytes([_NULL])
    if isinstance(value, Undefined):
        return bytes([_UNDEFINED])
    if isinstance(value, bool):
        return bytes([_BOOLEAN, 1 if value else 0])
    if isinstance(value, (int, float)):
        return bytes([_NUMBER]) + struct.pack(">d", float(value))
    if isinstance(value, str):
        raw = value.encode("utf-8")
        if len(raw) > 0xFFFF:
            return bytes([_LONG_STRING]) + struct.pack(">I", len(raw)) + raw
        return bytes([_STRING]) + struct.pack(">H", len(raw)) + raw
    if isinstance(value, datetime):
        moment = value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
        millis = (moment - _EPOCH) / timedelta(milliseconds=1)
        return bytes([_DATE]) + struct.pack(">dh", millis, 0)
    if isinstance(value, Mapping):
        return bytes([_OBJECT]) + _encode_pairs(value)
    if isinstance(value, (list, tuple)):
        return (
            bytes([_STRICT_ARRAY])
            + struct.pack(">I", len(value))
            + b"".join(encode_value(item) for item in value)
        )
    raise AMFError(f"unsupported AMF0 value type: {type(value).__name__}")


def encode_values(values: Iterable[Any]) -> bytes:
    """Encode a sequence of values back to back."""
    return b"".join(encode_value(v) for v in values)


class _Decoder:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def _take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise AMFError("unexpected end of AMF0 data")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def _unpack(self, fmt: str) -> Any:
        return struct.unpack(fmt, self._take(struct.calcsize(fmt)))[0]

    def _text(self, size: int) -> str:
        try:
            return self._take(size).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise AMFError("invalid UTF-8 in AMF0 string") from exc

    def _pairs(self) -> dict:
        result = {}
        while True:
            key = self._text(self._unpack(">H"))
            if key == "":
                marker = self._take(1)[0]
                if marker == _OBJECT_END:
                    return result
                raise AMFError("empty object key without object end marker")
            result[key] = self.value()

    def value(self) -> Any:
        marker = self._take(1)[0]
        if marker == _NUMBER:
            return self._unpack(">d")
        if marker == _BOOLEAN:
            return self._take(1)[0] != 0
        if marker == _STRING:
            return self._text(self._unpack(">H"))
        if marker == _LONG_STRING:
            return self._text(self._unpack(">I"))
        if marker == _OBJECT:
            return self._pairs()
        if marker == _ECMA_ARRAY:
            self._unpack(">I")
            return self._pairs()
        if marker == _NULL:
            return None
        if marker == _UNDEFINED:
            return Undefined()
        if marker == _STRICT_ARRAY:
            count = self._unpack(">I")
            return [self.value() for _ in range(count)]
        if marker == _DATE:
            millis = self._unpack(">d")
            self._unpack(">h")
            return _EPOCH + timedelta(milliseconds=millis)
        raise AMFError(f"unsupported AMF0 marker: 0x{marker:02x}")


def decode_values(data: bytes) -> List[Any]:
    """Decode all AMF0 values in ``data``."""
    decoder = _Decoder(data)
    values = []
    while not decoder.at_end:
        values.append(decoder.value())
    return values