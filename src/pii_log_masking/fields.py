"""Field name matching and masking configuration.

The masked field list arrives as a comma separated string. Each token is
trimmed, stripped of characters outside ``[A-Za-z0-9_]`` and kept only when
the result is non-empty and at most ``MAX_FIELD_NAME_LENGTH`` characters.
Matching is exact and case-sensitive.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pii_log_masking.errors import (
    MissingFieldNamesError,
    MissingMaskTokenError,
    NoValidFieldNamesError,
)

MAX_FIELD_NAME_LENGTH = 50
DEFAULT_MAX_RECURSION_DEPTH = 10
DEFAULT_SCAN_WINDOW = 100_000

_DISALLOWED_CHARS_RE = re.compile(r"[^A-Za-z0-9_]")


@dataclass(frozen=True)
class MaskingConfig:
    """Validated, immutable masking configuration."""

    field_names: frozenset[str]
    mask_token: str
    max_recursion_depth: int = DEFAULT_MAX_RECURSION_DEPTH
    scan_window: int = DEFAULT_SCAN_WINDOW

    def matches(self, name: object) -> bool:
        return name in self.field_names

    def __repr__(self) -> str:
        return (
            f"MaskingConfig(fields={sorted(self.field_names)!r}, "
            f"max_recursion_depth={self.max_recursion_depth}, "
            f"scan_window={self.scan_window})"
        )


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def clean_field_name(token: str) -> str | None:
    """Return the cleaned field name, or None when the token is unusable."""
    cleaned = _DISALLOWED_CHARS_RE.sub("", token.strip())
    if not cleaned or len(cleaned) > MAX_FIELD_NAME_LENGTH:
        return None
    return cleaned


def parse_field_names(csv: str | None) -> frozenset[str]:
    """Parse a comma separated field list into a set of cleaned names.

    Raises ``MissingFieldNamesError`` for a missing or blank list and
    ``NoValidFieldNamesError`` when every token is rejected.
    """
    if _is_blank(csv):
        raise MissingFieldNamesError()

    tokens = csv.split(",")
    names: set[str] = set()
    for token in tokens:
        cleaned = clean_field_name(token)
        if cleaned is not None:
            names.add(cleaned)
    if not names:
        raise NoValidFieldNamesError(len(tokens))
    return frozenset(names)


def configure(
    raw_field_names_csv: str | None,
    mask_token: str | None,
    *,
    max_recursion_depth: int = DEFAULT_MAX_RECURSION_DEPTH,
    scan_window: int = DEFAULT_SCAN_WINDOW,
) -> MaskingConfig:
    """Validate raw settings and build a ``MaskingConfig``."""
    if _is_blank(mask_token):
        raise MissingMaskTokenError()
    if max_recursion_depth < 1:
        raise ValueError("max_recursion_depth must be >= 1")
    if scan_window < 1:
        raise ValueError("scan_window must be >= 1")
    return MaskingConfig(
        field_names=parse_field_names(raw_field_names_csv),
        mask_token=mask_token,
        max_recursion_depth=max_recursion_depth,
        scan_window=scan_window,
    )
