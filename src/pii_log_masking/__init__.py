"""PII masking for structured log payloads."""

from .engine import PiiMasker
from .errors import (
    ConfigError,
    MaskerNotStartedError,
    MissingFieldNamesError,
    MissingMaskTokenError,
    NoValidFieldNamesError,
)
from .fields import MaskingConfig, configure, parse_field_names
from .formatter import JsonMaskingFormatter
from .scanner import (
    Candidate,
    NotJsonLike,
    Span,
    detect_embedded_json,
    extract_json_from_string,
    looks_like_json_string,
)
from .status import StatusBuffer, StatusEvent, StatusKind

__all__ = [
    "Candidate",
    "ConfigError",
    "JsonMaskingFormatter",
    "MaskerNotStartedError",
    "MaskingConfig",
    "MissingFieldNamesError",
    "MissingMaskTokenError",
    "NoValidFieldNamesError",
    "NotJsonLike",
    "PiiMasker",
    "Span",
    "StatusBuffer",
    "StatusEvent",
    "StatusKind",
    "configure",
    "detect_embedded_json",
    "extract_json_from_string",
    "looks_like_json_string",
    "parse_field_names",
]
