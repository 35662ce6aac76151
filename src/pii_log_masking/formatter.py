"""Structured JSON log formatter that masks PII in log arguments.

Every record becomes one JSON object with ``timestamp``, ``level``,
``logger``, ``message`` and, when present, ``exception``. Before the
message is interpolated each ``%``-style argument is converted to a JSON
tree and masked:

* ``None``, numbers, booleans, enums, dates and datetimes pass through.
* Strings that parse as a JSON object or array are masked as trees; any
  other string goes through ``PiiMasker.mask_text`` so embedded fragments
  are still redacted.
* Dicts, lists, dataclasses, pydantic models and other objects are
  materialized with ``to_json_tree`` and masked.
* For named ``%(key)s`` placeholders the key itself is a field name, so the
  value of a configured key is replaced by the mask token.

The template also goes through ``mask_text``. That catches JSON text that
was interpolated before logging (an f-string over ``json.dumps`` output),
but not Python reprs such as ``f"{user_dict}"``, which are not JSON.

Arguments larger than ``max_argument_bytes`` are replaced wholesale, and a
record that cannot be formatted is reduced to a fallback line that carries
no message content.
"""

from __future__ import annotations

import datetime
import decimal
import enum
import json
import logging
import re
import traceback
from collections.abc import Mapping
from typing import Any

from pii_log_masking.config import DEFAULT_MAX_ARGUMENT_BYTES
from pii_log_masking.engine import PiiMasker
from pii_log_masking.status import StatusKind, make_event
from pii_log_masking.utils.serialization import format_size, json_default, to_json_tree

MAX_EXCEPTION_FRAMES = 10

_SIMPLE_TYPES = (
    int,
    float,
    bool,
    decimal.Decimal,
    enum.Enum,
    datetime.date,
    datetime.datetime,
    datetime.time,
)

_NAMED_PLACEHOLDER_RE = re.compile(r"%\([^)]+\)")


class JsonMaskingFormatter(logging.Formatter):
    """``logging.Formatter`` emitting masked, single-line JSON records."""

    def __init__(
        self,
        masker: PiiMasker,
        *,
        pretty_print: bool = False,
        max_argument_bytes: int = DEFAULT_MAX_ARGUMENT_BYTES,
    ) -> None:
        super().__init__()
        if masker is None:
            raise ValueError("JsonMaskingFormatter requires a PiiMasker")
        # Refuse to exist with a masker that cannot start.
        masker.start()
        self.masker = masker
        self.pretty_print = pretty_print
        self.max_argument_bytes = max_argument_bytes

    def format(self, record: logging.LogRecord) -> str:
        try:
            payload: dict[str, Any] = {
                "timestamp": self.formatTime(record),
                "level": record.levelname,
                "logger": record.name,
                "message": self.render_message(record),
            }
            if record.exc_info and record.exc_info[0] is not None:
                payload["exception"] = self.render_exception(record.exc_info)
            return json.dumps(
                payload,
                ensure_ascii=False,
                indent=2 if self.pretty_print else None,
                default=json_default,
            )
        except Exception as exc:
            self._report(
                StatusKind.LAYOUT_ERROR,
                f"record could not be formatted ({type(exc).__name__})",
            )
            return self.format_fallback(record, exc)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        created = datetime.datetime.fromtimestamp(record.created).astimezone()
        if datefmt:
            return created.strftime(datefmt)
        return created.isoformat(timespec="milliseconds")

    def render_message(self, record: logging.LogRecord) -> str:
        template = record.msg
        if not isinstance(template, str):
            return self.mask_argument(template)

        template = self.masker.mask_text(template)
        args = record.args
        if not args:
            return template
        if isinstance(args, Mapping):
            if _NAMED_PLACEHOLDER_RE.search(template):
                return template % self._mask_named_arguments(args)
            return template % (self.mask_argument(args),)
        return template % tuple(self.mask_argument(arg) for arg in args)

    def mask_argument(self, arg: Any) -> Any:
        """Return a log-safe rendition of one message argument."""
        if arg is None or isinstance(arg, _SIMPLE_TYPES):
            return arg
        try:
            if isinstance(arg, str):
                return self._mask_string_argument(arg)
            tree = to_json_tree(arg)
            if isinstance(tree, str):
                return self._mask_string_argument(tree)
            rendered = self._dumps(tree)
            if self._too_large(rendered):
                return self._too_large_placeholder(rendered)
            self.masker.mask(tree)
            return self._dumps(tree)
        except (TypeError, ValueError, RecursionError) as exc:
            self._report(
                StatusKind.SERIALIZATION_FAILURE,
                f"log argument could not be serialized ({type(exc).__name__})",
            )
            return f"[REDACTED DUE TO SERIALIZATION FAILURE: {type(exc).__name__}]"

    def render_exception(self, exc_info: Any) -> str:
        exc_type, exc_value, tb = exc_info
        message = self.masker.mask_text(str(exc_value)) if exc_value is not None else ""
        lines = [f"{exc_type.__name__}: {message}"]
        for frame in traceback.extract_tb(tb)[:MAX_EXCEPTION_FRAMES]:
            lines.append(f"\tat {frame.name} ({frame.filename}:{frame.lineno})")
        return "\n".join(lines)

    def format_fallback(self, record: logging.LogRecord, exc: BaseException) -> str:
        return (
            f"{self.formatTime(record)} [{record.levelname}] {record.name} - "
            f"[LAYOUT ERROR] {type(exc).__name__}"
        )

    def _mask_named_arguments(self, args: Mapping[str, Any]) -> dict[str, Any]:
        # Mapping keys are field names in their own right.
        config = self.masker.config
        masked: dict[str, Any] = {}
        for key, value in args.items():
            if config.matches(key):
                masked[key] = self._mask_field_argument(value)
            else:
                masked[key] = self.mask_argument(value)
        return masked

    def _mask_field_argument(self, value: Any) -> Any:
        """Render the value of a configured field as the mask token, keeping its shape."""
        if value is None:
            return None
        try:
            tree = to_json_tree(value)
        except (TypeError, ValueError, RecursionError):
            return self.masker.config.mask_token
        masked = self.masker.mask_value(tree)
        if isinstance(masked, (dict, list)):
            return self._dumps(masked)
        return masked

    def _mask_string_argument(self, text: str) -> str:
        if self._too_large(text):
            return self._too_large_placeholder(text)
        if text.lstrip()[:1] in ("{", "["):
            try:
                tree = json.loads(text)
            except ValueError:
                tree = None
            if isinstance(tree, (dict, list)):
                self.masker.mask(tree)
                return self._dumps(tree)
        return self.masker.mask_text(text)

    def _dumps(self, tree: Any) -> str:
        return json.dumps(tree, ensure_ascii=False, separators=(",", ":"))

    def _too_large(self, text: str) -> bool:
        return len(text) > self.max_argument_bytes or (
            len(text.encode("utf-8")) > self.max_argument_bytes
        )

    def _too_large_placeholder(self, text: str) -> str:
        size = len(text.encode("utf-8"))
        self._report(
            StatusKind.ARGUMENT_TOO_LARGE,
            f"log argument exceeds {format_size(self.max_argument_bytes)} and was redacted",
            length=size,
        )
        return f"[REDACTED DUE TO ARG TOO LARGE: {format_size(size)}]"

    def _report(self, kind: StatusKind, message: str, *, length: int | None = None) -> None:
        try:
            self.masker.status_listener(make_event(kind, message, length=length))
        except Exception:  # listener failures are ignored
            return
