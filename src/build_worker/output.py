"""Timestamped progress output shared by the stages of a work order."""
from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import BinaryIO


def format_timestamp(now_ns: int | None = None) -> str:
    """Return ``YYYY/MM/DD hh:mm:ss.nnnnnnnnn TZ`` in local time."""

    if now_ns is None:
        now_ns = time.time_ns()
    seconds, nanos = divmod(now_ns, 1_000_000_000)
    moment = datetime.fromtimestamp(seconds).astimezone()
    return f"{moment.strftime('%Y/%m/%d %H:%M:%S')}.{nanos:09d} {moment.strftime('%Z')}"


def format_line(message: str | bytes, now_ns: int | None = None) -> bytes:
    body = message if isinstance(message, bytes) else message.encode("utf-8")
    return format_timestamp(now_ns).encode("utf-8") + b": " + body + b"\n"


class OutputSink:
    """Serialize writes to a byte stream so one call is never split."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._write_lock = threading.Lock()

    def write(self, data: bytes) -> None:
        with self._write_lock:
            self._stream.write(data)
            flush = getattr(self._stream, "flush", None)
            if flush is not None:
                flush()


class MemorySink(OutputSink):
    """Keeps every write as a separate chunk."""

    def __init__(self) -> None:
        self.chunks: list[bytes] = []
        self._write_lock = threading.Lock()

    def write(self, data: bytes) -> None:
        with self._write_lock:
            self.chunks.append(data)

    def text(self) -> str:
        return b"".join(self.chunks).decode("utf-8", errors="replace")


def report(sink: OutputSink, message: str | bytes) -> None:
    """Write one timestamped line. ``OSError`` from the sink propagates."""

    sink.write(format_line(message))


__all__ = ["MemorySink", "OutputSink", "format_line", "format_timestamp", "report"]
