"""Diagnostics for non-fatal masking conditions.

Status events describe which limit was hit or which fragment could not be
handled. They carry sizes and depths only, never the processed value, and
they are delivered to a listener instead of the ``logging`` module so a
masking formatter can never feed its own diagnostics back into itself.
"""

from __future__ import annotations

import sys
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TextIO

_DEFAULT_BUFFER_SIZE = 200


class StatusKind(str, Enum):
    DEPTH_LIMIT = "depth_limit"
    SCAN_LIMIT = "scan_limit"
    UNBALANCED = "unbalanced"
    PARSE_FAILURE = "parse_failure"
    SERIALIZATION_FAILURE = "serialization_failure"
    ARGUMENT_TOO_LARGE = "argument_too_large"
    LAYOUT_ERROR = "layout_error"


@dataclass(frozen=True)
class StatusEvent:
    kind: StatusKind
    message: str
    depth: int | None = None
    length: int | None = None
    emitted_at: datetime | None = None

    def render(self) -> str:
        parts = [f"[pii-masking] {self.kind.value}: {self.message}"]
        if self.depth is not None:
            parts.append(f"depth={self.depth}")
        if self.length is not None:
            parts.append(f"length={self.length}")
        return " ".join(parts)


StatusListener = Callable[[StatusEvent], None]


class StatusBuffer:
    """Bounded in-memory status sink, safe to share across threads."""

    def __init__(self, max_events: int = _DEFAULT_BUFFER_SIZE) -> None:
        if max_events < 1:
            raise ValueError("max_events must be >= 1")
        self._lock = threading.Lock()
        self._events: deque[StatusEvent] = deque(maxlen=max_events)
        self._counts: dict[StatusKind, int] = {}

    def __call__(self, event: StatusEvent) -> None:
        with self._lock:
            self._events.append(event)
            self._counts[event.kind] = self._counts.get(event.kind, 0) + 1

    def events(self) -> list[StatusEvent]:
        with self._lock:
            return list(self._events)

    def count(self, kind: StatusKind) -> int:
        """Total events of ``kind`` seen, including ones evicted from the buffer."""
        with self._lock:
            return self._counts.get(kind, 0)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
            self._counts.clear()


def stderr_listener(event: StatusEvent, stream: TextIO | None = None) -> None:
    """Write one status line straight to stderr."""
    target = stream if stream is not None else sys.stderr
    target.write(event.render() + "\n")
    target.flush()


def make_event(
    kind: StatusKind,
    message: str,
    *,
    depth: int | None = None,
    length: int | None = None,
) -> StatusEvent:
    return StatusEvent(
        kind=kind,
        message=message,
        depth=depth,
        length=length,
        emitted_at=datetime.now(tz=timezone.utc),
    )
