"""Logging helpers that route records through the PII masking formatter."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

from pii_log_masking.config import build_masker, load_settings
from pii_log_masking.formatter import JsonMaskingFormatter
from pii_log_masking.status import stderr_listener

_logging_configured = False
_logging_lock = threading.Lock()

_logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure masked structured logging from settings.

    Raises ``ConfigError`` when the masking settings are invalid, so the
    process never starts emitting records through an unmasked pipeline.
    """
    global _logging_configured

    settings = load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    masker = build_masker(settings.masking, status_listener=stderr_listener)
    formatter = JsonMaskingFormatter(
        masker,
        pretty_print=settings.logging.pretty_print,
        max_argument_bytes=settings.masking.max_argument_bytes,
    )

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if settings.logging.file:
        try:
            Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.logging.file)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as exc:
            _logger.warning("Failed to open log file %s: %s", settings.logging.file, exc)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging()
    return logging.getLogger(name)
