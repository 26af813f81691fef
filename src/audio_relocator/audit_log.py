"""Append-only audit trail of relocation operations.

The orchestrator and move resolver write LogEntry records into a LogSink
supplied by the caller; the caller owns flushing, rotation and rendering.
Each record is also mirrored to loguru at a matching level.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import IO, Protocol

from loguru import logger

from .models import LogEntry, LogStatus

log = logger.bind(stage="audit")

_LEVELS = {
    LogStatus.INFO: "INFO",
    LogStatus.SUCCESS: "SUCCESS",
    LogStatus.WARNING: "WARNING",
    LogStatus.ERROR: "ERROR",
}


class LogSink(Protocol):
    def append(self, entry: LogEntry) -> None: ...

    def flush(self) -> None: ...


class MemoryLogSink:
    """Keeps entries in a list. For tests and small runs."""

    def __init__(self) -> None:
        self.entries: list[LogEntry] = []

    def append(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def flush(self) -> None:
        pass

    def by_action(self, action: str) -> list[LogEntry]:
        return [e for e in self.entries if e.action == action]


class JsonlLogSink:
    """Writes one JSON object per line. Entries are not retained in memory.

    Undecodable filename bytes (surrogate-escaped by os.fsdecode) are written
    back as the original bytes, so read_jsonl() returns the same names.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.count = 0
        path.parent.mkdir(parents=True, exist_ok=True)
        self._fh: IO[str] | None = open(
            path, "a", encoding="utf-8", errors="surrogateescape"
        )

    def append(self, entry: LogEntry) -> None:
        if self._fh is None:
            raise ValueError(f"Log sink {self.path} is closed")
        self._fh.write(json.dumps(asdict(entry), ensure_ascii=False) + "\n")
        self.count += 1

    def flush(self) -> None:
        if self._fh is not None:
            self._fh.flush()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def __enter__(self) -> JsonlLogSink:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def read_jsonl(path: Path) -> list[LogEntry]:
    """Load entries written by JsonlLogSink."""
    entries = []
    for line in path.read_text(encoding="utf-8", errors="surrogateescape").splitlines():
        if line.strip():
            data = json.loads(line)
            data["status"] = LogStatus(data["status"])
            entries.append(LogEntry(**data))
    return entries


def record(sink: LogSink, entry: LogEntry) -> None:
    """Append to the sink and mirror to the diagnostic log."""
    sink.append(entry)
    log.log(_LEVELS[entry.status], f"[{entry.action}] {entry.message}")
