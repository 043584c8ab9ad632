# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Bounded, thread-safe diagnostic log shared by every backend component.

Entries live in a FIFO ring buffer: once ``capacity`` is reached the oldest
entry is evicted.  Observers are notified synchronously on every append, and
entries can optionally be mirrored to a JSONL history file on disk.
"""

from __future__ import annotations

import collections
import dataclasses
import json
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from distrobear._callbacks import CallbackRegistry
from distrobear.types import LogEntry, LogLevel

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

DEFAULT_CAPACITY = 200
LOG_CHANNEL = "diagnostic-log"


class HistoryWriter:
    """Appends log entries as JSON lines to a history file."""

    def __init__(self, path: Path, *, enabled: bool = True) -> None:
        self._path = path
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        """Whether writing is active."""
        return self._enabled

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: LogEntry) -> OSError | None:
        """Append one JSONL line for *entry*.

        An ``OSError`` turns the writer off and is returned instead of raised.
        """
        if not self._enabled:
            return None
        record = dataclasses.asdict(entry)
        record["level"] = entry.level.value
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a") as f:
                f.write(json.dumps(record, default=str) + "\n")
        except OSError as exc:
            self._enabled = False
            return exc
        return None

    def truncate(self) -> OSError | None:
        """Empty the history file, if it exists."""
        if not (self._enabled and self._path.is_file()):
            return None
        try:
            self._path.write_text("")
        except OSError as exc:
            self._enabled = False
            return exc
        return None


class DiagnosticLog:
    """Ring buffer of :class:`LogEntry` objects, most-recent-last."""

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        *,
        history: HistoryWriter | None = None,
        callbacks: CallbackRegistry | None = None,
    ) -> None:
        self._capacity = max(capacity, 1)
        self._lock = threading.Lock()
        self._entries: collections.deque[LogEntry] = collections.deque(maxlen=self._capacity)
        self._evicted = 0
        self._history = history
        self._callbacks = callbacks if callbacks is not None else CallbackRegistry()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def evicted(self) -> int:
        """Number of entries dropped because the buffer was full."""
        with self._lock:
            return self._evicted

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, level: LogLevel, message: str, details: str | None = None) -> LogEntry:
        """Push an entry, evicting the oldest on overflow, then notify observers."""
        entry = LogEntry(
            timestamp=datetime.now(tz=timezone.utc),
            level=LogLevel(level),
            message=message,
            details=details,
        )
        with self._lock:
            if len(self._entries) == self._capacity:
                self._evicted += 1
            self._entries.append(entry)
        failure = self._history.write(entry) if self._history is not None else None
        self._callbacks.dispatch(LOG_CHANNEL, entry)
        if failure is not None:
            self._history_failed(failure)
        return entry

    def _history_failed(self, exc: OSError) -> None:
        path = self._history.path  # type: ignore[union-attr]
        self.warn(f"Could not write history file {path}; history disabled.", str(exc))

    def info(self, message: str, details: str | None = None) -> LogEntry:
        return self.append(LogLevel.INFO, message, details)

    def warn(self, message: str, details: str | None = None) -> LogEntry:
        return self.append(LogLevel.WARN, message, details)

    def error(self, message: str, details: str | None = None) -> LogEntry:
        return self.append(LogLevel.ERROR, message, details)

    def snapshot(self) -> list[LogEntry]:
        """Return a copy of the buffered entries, oldest first."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        """Drop every entry (and the on-disk history) and record that the log was cleared."""
        with self._lock:
            self._entries.clear()
        failure = self._history.truncate() if self._history is not None else None
        self.info("Logs cleared by user.")
        if failure is not None:
            self._history_failed(failure)

    def subscribe(self, fn: Callable[[LogEntry], object]) -> Callable[[], None]:
        """Register an observer called with each new entry; returns an unsubscribe function."""
        return self._callbacks.subscribe(LOG_CHANNEL, fn)  # type: ignore[arg-type]


def read_history(path: Path) -> list[LogEntry]:
    """Load the entries of a JSONL history file, skipping malformed lines."""
    if not path.is_file():
        return []
    entries: list[LogEntry] = []
    for raw in path.read_text().splitlines():
        stripped = raw.strip()
        if not stripped:
            continue
        try:
            record = json.loads(stripped)
            entries.append(
                LogEntry(
                    timestamp=datetime.fromisoformat(record["timestamp"]),
                    level=LogLevel(record["level"]),
                    message=str(record["message"]),
                    details=record.get("details"),
                )
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            continue
    return entries
