from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, TextIO

from ws_latency.types import CloseRecord

TAGS = ("CONNECT", "CONNECTED", "OUT", "IN", "ERROR", "DISCONNECTED", "EXIT")
TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_ts(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).strftime(TS_FORMAT)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _one_line(field: str) -> str:
    # A raw line break in valid JSON is insignificant whitespace.
    return field.replace("\r\n", " ").replace("\r", " ").replace("\n", " ")


@dataclass(frozen=True)
class LogRecord:
    tag: str
    ts: datetime
    rest: str = ""


def parse_line(line: str) -> LogRecord:
    parts = line.rstrip("\n").split(" ", 2)
    if len(parts) < 2 or parts[0] not in TAGS:
        raise ValueError(f"Not a frame log line: {line!r}")
    ts = datetime.strptime(parts[1], TS_FORMAT).replace(tzinfo=timezone.utc)
    return LogRecord(tag=parts[0], ts=ts, rest=parts[2] if len(parts) > 2 else "")


class FrameLogger:
    """Append-only, line-oriented record of every frame and connection event.

    Each record is written with a single ``write`` under a lock and flushed, so
    concurrent writers never interleave partial lines. Ordering across writers
    is whatever order they acquire the lock in.
    """

    def __init__(self, path: str | Path, clock: Callable[[], datetime] = utc_now) -> None:
        self.path = Path(path)
        self.clock = clock
        self._lock = threading.Lock()
        self._fh: Optional[TextIO] = None
        self._open()

    def _open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = open(self.path, "a", encoding="utf-8", buffering=1)

    @property
    def closed(self) -> bool:
        return self._fh is None

    def write(self, tag: str, *fields: str) -> str:
        line = " ".join((tag, format_ts(self.clock())) + tuple(_one_line(f) for f in fields)) + "\n"
        with self._lock:
            if self._fh is None:
                raise ValueError(f"Frame log {self.path} is closed")
            self._fh.write(line)
            self._fh.flush()
        return line

    def connect(self, url: str) -> str:
        return self.write("CONNECT", url)

    def connected(self) -> str:
        return self.write("CONNECTED")

    def out(self, text: str) -> str:
        return self.write("OUT", text)

    def inbound(self, text: str, status: str, latency: Optional[int]) -> str:
        return self.write("IN", status, "?" if latency is None else str(latency), text)

    def error(self, text: str) -> str:
        return self.write("ERROR", text)

    def disconnected(self, record: CloseRecord) -> str:
        return self.write("DISCONNECTED", record.to_json())

    def exit(self) -> str:
        return self.write("EXIT")

    def close(self) -> None:
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None
