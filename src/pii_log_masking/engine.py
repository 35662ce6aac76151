"""PII masking engine for JSON-like log payloads.

``PiiMasker`` walks a tree of ``dict``/``list``/scalar values in place and
replaces the value of every configured field with the mask token. String
values that carry JSON as text (``'Response: {"NAME":"Doe"}'``) are parsed,
masked and spliced back, leaving the surrounding prose untouched.

Traversal of the tree itself is iterative. The only recursive path is the
re-entry taken for embedded JSON, and it is bounded by an explicit depth
argument: the caller's tree is level 1 and every embedded level adds one.
Levels above ``max_recursion_depth`` are left as they are.

A masker is configured once with ``start()`` and is then read-only, so one
instance can be shared by any number of threads as long as each thread
masks its own tree.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Union

from pii_log_masking.errors import MaskerNotStartedError
from pii_log_masking.fields import (
    DEFAULT_MAX_RECURSION_DEPTH,
    DEFAULT_SCAN_WINDOW,
    MaskingConfig,
    configure,
)
from pii_log_masking.scanner import (
    Candidate,
    NotJsonLikeReason,
    detect_embedded_json,
    looks_like_json_string,
)
from pii_log_masking.status import (
    StatusBuffer,
    StatusKind,
    StatusListener,
    make_event,
)

JsonValue = Union[dict[str, Any], list[Any], str, int, float, bool, None]

logger = logging.getLogger(__name__)


class PiiMasker:
    """Field-name based PII masker with a start/stop lifecycle."""

    def __init__(
        self,
        masked_fields: str | None = None,
        mask_token: str | None = None,
        *,
        max_recursion_depth: int = DEFAULT_MAX_RECURSION_DEPTH,
        scan_window: int = DEFAULT_SCAN_WINDOW,
        status_listener: StatusListener | None = None,
    ) -> None:
        self.masked_fields = masked_fields
        self.mask_token = mask_token
        self.max_recursion_depth = max_recursion_depth
        self.scan_window = scan_window
        self.status_listener: StatusListener = (
            status_listener if status_listener is not None else StatusBuffer()
        )
        self._config: MaskingConfig | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: MaskingConfig,
        *,
        status_listener: StatusListener | None = None,
    ) -> "PiiMasker":
        """Build a started masker from an already validated configuration."""
        masker = cls(
            ",".join(sorted(config.field_names)),
            config.mask_token,
            max_recursion_depth=config.max_recursion_depth,
            scan_window=config.scan_window,
            status_listener=status_listener,
        )
        masker._config = config
        return masker

    # lifecycle

    def start(self) -> None:
        """Validate the configuration once; later calls are no-ops.

        Raises ``ConfigError`` when the field list or mask token is invalid.
        The masker stays unstarted in that case and refuses to mask.
        """
        if self._config is not None:
            return
        with self._lock:
            if self._config is not None:
                return
            config = configure(
                self.masked_fields,
                self.mask_token,
                max_recursion_depth=self.max_recursion_depth,
                scan_window=self.scan_window,
            )
            self._config = config
        logger.info(
            "PII masker started: %d field(s), max_recursion_depth=%d, scan_window=%d",
            len(config.field_names),
            config.max_recursion_depth,
            config.scan_window,
        )

    def stop(self) -> None:
        with self._lock:
            if self._config is None:
                return
            self._config = None
        logger.debug("PII masker stopped")

    @property
    def is_started(self) -> bool:
        return self._config is not None

    @property
    def config(self) -> MaskingConfig:
        config = self._config
        if config is None:
            raise MaskerNotStartedError("PII masker is not started; refusing to mask")
        return config

    # public API

    def mask(self, root: JsonValue) -> None:
        """Mask ``root`` in place. ``None`` is ignored."""
        config = self.config
        if root is None:
            return
        self._traverse(root, 1, config)

    def mask_text(self, text: str) -> str:
        """Return ``text`` with its first embedded JSON fragment masked."""
        config = self.config
        if not looks_like_json_string(text):
            return text
        return self._mask_embedded(text, 1, config)

    def mask_value(self, original: JsonValue) -> JsonValue:
        """Replace a matched value while keeping its shape.

        Lists keep their length and dicts their keys; every element becomes
        the mask token. Scalars collapse to the token and ``None`` is kept.
        """
        return _masked_copy(original, self.config.mask_token)

    # traversal

    def _traverse(self, root: JsonValue, depth: int, config: MaskingConfig) -> None:
        stack: list[Any] = [root]
        seen: set[int] = set()

        while stack:
            node = stack.pop()
            if not isinstance(node, (dict, list)):
                continue
            if id(node) in seen:
                continue
            seen.add(id(node))

            if isinstance(node, list):
                stack.extend(node)
                continue

            to_mask: list[str] = []
            for name, value in list(node.items()):
                if config.matches(name):
                    to_mask.append(name)
                elif isinstance(value, str):
                    if looks_like_json_string(value):
                        node[name] = self._mask_embedded(value, depth, config)
                else:
                    stack.append(value)

            for name in to_mask:
                node[name] = _masked_copy(node[name], config.mask_token)

    def _mask_embedded(self, text: str, depth: int, config: MaskingConfig) -> str:
        # The fragment would be level depth + 1.
        if depth >= config.max_recursion_depth:
            self._emit(
                StatusKind.DEPTH_LIMIT,
                f"embedded JSON deeper than {config.max_recursion_depth} levels left unmasked",
                depth=depth + 1,
                length=len(text),
            )
            return text

        result = detect_embedded_json(text, config.scan_window)
        if not isinstance(result, Candidate):
            if result.reason is NotJsonLikeReason.SCAN_WINDOW_EXCEEDED:
                self._emit(
                    StatusKind.SCAN_LIMIT,
                    f"no closing delimiter within {config.scan_window} characters",
                    depth=depth,
                    length=len(text),
                )
            elif result.reason is NotJsonLikeReason.UNBALANCED:
                self._emit(
                    StatusKind.UNBALANCED,
                    "embedded JSON delimiters are unbalanced",
                    depth=depth,
                    length=len(text),
                )
            return text

        span = result.span
        try:
            nested = json.loads(span.slice(text))
        except (ValueError, RecursionError) as exc:
            self._emit(
                StatusKind.PARSE_FAILURE,
                f"embedded JSON could not be parsed ({type(exc).__name__})",
                depth=depth,
                length=len(span),
            )
            return text

        self._traverse(nested, depth + 1, config)

        try:
            rendered = json.dumps(nested, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError, RecursionError) as exc:
            self._emit(
                StatusKind.SERIALIZATION_FAILURE,
                f"masked embedded JSON could not be serialized ({type(exc).__name__})",
                depth=depth,
                length=len(span),
            )
            return text
        return text[: span.start] + rendered + text[span.end :]

    def _emit(
        self,
        kind: StatusKind,
        message: str,
        *,
        depth: int | None = None,
        length: int | None = None,
    ) -> None:
        try:
            self.status_listener(make_event(kind, message, depth=depth, length=length))
        except Exception:  # listener failures are ignored
            return


def _masked_copy(original: JsonValue, token: str) -> JsonValue:
    if original is None:
        return None
    if isinstance(original, list):
        return [token for _ in original]
    if isinstance(original, dict):
        return {key: token for key in original}
    return token
