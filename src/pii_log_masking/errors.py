"""Exceptions raised by the masking configuration and lifecycle."""

from __future__ import annotations


class ConfigError(ValueError):
    """Base exception for invalid masking configuration."""

    pass


class MissingMaskTokenError(ConfigError):
    """Raised when the mask token is missing or blank."""

    def __init__(self) -> None:
        super().__init__("maskToken must be configured")


class MissingFieldNamesError(ConfigError):
    """Raised when the masked field list is missing or blank."""

    def __init__(self) -> None:
        super().__init__("maskedFields must be configured")


class NoValidFieldNamesError(ConfigError):
    """Raised when no usable field name survives cleaning."""

    def __init__(self, raw_count: int):
        self.raw_count = raw_count
        super().__init__(
            f"maskedFields produced no valid entries ({raw_count} token(s) rejected)"
        )


class MaskerNotStartedError(RuntimeError):
    """Raised when masking is requested from a masker that is not started."""
