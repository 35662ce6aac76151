"""JSON serialization utilities for log arguments."""

from __future__ import annotations

import base64
import dataclasses
import datetime
import decimal
import enum
import json
from itertools import islice
from typing import Any

_MAX_ITERABLE_ITEMS = 10_000


def json_default(obj: object) -> object:
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, (datetime.date, datetime.datetime, datetime.time)):
        return obj.isoformat()
    if isinstance(obj, decimal.Decimal):
        # Preserve numeric type: convert to int if no decimal part, else float.
        # For very large values that would lose precision as float, use string.
        if obj == obj.to_integral_value():
            return int(obj)
        f = float(obj)
        if decimal.Decimal(str(f)) != obj:
            return str(obj)
        return f
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, (bytes, bytearray)):
        try:
            return bytes(obj).decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(bytes(obj)).decode("utf-8")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        return model_dump(mode="json")

    # Bounded via islice to prevent OOM on infinite/huge iterables.
    if hasattr(obj, "__iter__") and not isinstance(obj, (str, bytes, dict, list)):
        try:
            return list(islice(obj, _MAX_ITERABLE_ITEMS))
        except TypeError:
            pass

    return str(obj)


def to_json_tree(value: Any) -> Any:
    """Materialize ``value`` as a fresh tree of dicts, lists and scalars.

    The result never aliases ``value``, so it can be masked in place without
    touching the caller's object.
    """
    return json.loads(json.dumps(value, default=json_default, ensure_ascii=False))


def format_size(size: int) -> str:
    """Format bytes as human-readable size."""
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    return f"{size / (1024 * 1024):.1f}MB"
