"""Detection and extraction of JSON embedded as text inside string values.

Upstream systems often stringify a nested payload, e.g.
``'Response: {"NAME":"Doe"}'``. Detection is a cheap two-step protocol:
``looks_like_json_string`` filters candidates, then a single forward scan
finds the span of the first object or array. The scan is quote-aware and
escape-aware and never inspects more than ``scan_window`` characters, so a
crafted value cannot force an unbounded scan on every masking pass.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from pii_log_masking.fields import DEFAULT_SCAN_WINDOW

_DELIMITER_PAIRS = {"{": "}", "[": "]"}

# Only these characters can change scanner state.
_SIGNIFICANT_CHARS_RE = re.compile(r'[\\"{}\[\]]')


@dataclass(frozen=True)
class Span:
    """Half-open ``[start, end)`` character range."""

    start: int
    end: int

    def slice(self, text: str) -> str:
        return text[self.start : self.end]

    def __len__(self) -> int:
        return self.end - self.start


class NotJsonLikeReason(str, Enum):
    NO_DELIMITERS = "no_delimiters"
    UNBALANCED = "unbalanced"
    SCAN_WINDOW_EXCEEDED = "scan_window_exceeded"


@dataclass(frozen=True)
class NotJsonLike:
    reason: NotJsonLikeReason
    start: int | None = None


@dataclass(frozen=True)
class Candidate:
    span: Span


def looks_like_json_string(text: str | None) -> bool:
    """True when ``text`` holds an opening delimiter followed by its closing one."""
    if not text or len(text) <= 1:
        return False
    for opening, closing in _DELIMITER_PAIRS.items():
        start = text.find(opening)
        if start >= 0 and text.rfind(closing) > start:
            return True
    return False


def _find_opening(text: str) -> int:
    object_start = text.find("{")
    array_start = text.find("[")
    if object_start < 0:
        return array_start
    if array_start < 0:
        return object_start
    return min(object_start, array_start)


def _scan_to_close(text: str, start: int, scan_window: int) -> tuple[int | None, bool]:
    """Return ``(end, window_exhausted)`` for the delimiter opened at ``start``."""
    opening = text[start]
    closing = _DELIMITER_PAIRS[opening]
    limit = min(len(text), start + scan_window)

    depth = 0
    in_string = False
    escaped_at = -1
    for match in _SIGNIFICANT_CHARS_RE.finditer(text, start, limit):
        index = match.start()
        if index == escaped_at:
            continue
        char = match.group()
        if char == "\\":
            escaped_at = index + 1
        elif char == '"':
            in_string = not in_string
        elif in_string:
            continue
        elif char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
            if depth == 0:
                return index + 1, False
    return None, limit < len(text)


def detect_embedded_json(
    text: str | None,
    scan_window: int = DEFAULT_SCAN_WINDOW,
) -> NotJsonLike | Candidate:
    """Classify ``text`` as plain text or as carrying an embedded JSON span."""
    if not looks_like_json_string(text):
        return NotJsonLike(NotJsonLikeReason.NO_DELIMITERS)

    start = _find_opening(text)
    end, window_exhausted = _scan_to_close(text, start, scan_window)
    if end is None:
        reason = (
            NotJsonLikeReason.SCAN_WINDOW_EXCEEDED
            if window_exhausted
            else NotJsonLikeReason.UNBALANCED
        )
        return NotJsonLike(reason, start=start)
    return Candidate(Span(start, end))


def extract_json_from_string(
    text: str | None,
    scan_window: int = DEFAULT_SCAN_WINDOW,
) -> Span | None:
    """Return the span of the first embedded object or array, if any."""
    result = detect_embedded_json(text, scan_window)
    if isinstance(result, Candidate):
        return result.span
    return None
