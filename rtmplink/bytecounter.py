"""Stream wrappers that count the bytes passing through them."""

from __future__ import annotations

import threading
from typing import Any


class CountingReader:
    """Wraps a readable stream and counts the bytes read from it."""

    def __init__(self, reader: Any) -> None:
        self._reader = reader
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        """Number of bytes read so far."""
        with self._lock:
            return self._count

    @count.setter
    def count(self, value: int) -> None:
        with self._lock:
            self._count = value

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes from the wrapped stream."""
        data = self._reader.read(size)
        if data:
            with self._lock:
                self._count += len(data)
        return data if data is not None else b""

    def readinto(self, buffer: bytearray | memoryview) -> int:
        """Read into ``buffer``, returning the number of bytes stored."""
        view = memoryview(buffer)
        data = self.read(len(view))
        view[: len(data)] = data
        return len(data)


class CountingWriter:
    """Wraps a writable stream and counts the bytes written to it."""

    def __init__(self, writer: Any) -> None:
        self._writer = writer
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        """Number of bytes written so far."""
        with self._lock:
            return self._count

    @count.setter
    def count(self, value: int) -> None:
        with self._lock:
            self._count = value

    def write(self, data: bytes) -> int:
        """Write ``data`` to the wrapped stream and return the bytes written."""
        written = self._writer.write(data)
        if written is None:
            written = len(data)
        with self._lock:
            self._count += written
        return written

    def flush(self) -> None:
        """Flush the wrapped stream when it supports flushing."""
        flush = getattr(self._writer, "flush", None)
        if flush is not None:
            flush()


class CountingReadWriter:
    """Counts bytes read from and written to a duplex stream."""

    def __init__(self, stream: Any) -> None:
        self.reader = CountingReader(stream)
        self.writer = CountingWriter(stream)

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, counting them."""
        return self.reader.read(size)

    def readinto(self, buffer: bytearray | memoryview) -> int:
        """Read into ``buffer``, counting the bytes."""
        return self.reader.readinto(buffer)

    def write(self, data: bytes) -> int:
        """Write ``data``, counting the bytes."""
        return self.writer.write(data)

    def flush(self) -> None:
        """Flush the underlying stream."""
        self.writer.flush()