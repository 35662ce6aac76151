from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from pii_log_masking.engine import PiiMasker
from pii_log_masking.errors import MissingMaskTokenError
from pii_log_masking.formatter import JsonMaskingFormatter
from pii_log_masking.status import StatusBuffer, StatusKind

MASK = "[REDACTED]"


def _record(msg: object, *args: object, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="app.payments",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


@pytest.fixture
def formatter(masker: PiiMasker) -> JsonMaskingFormatter:
    return JsonMaskingFormatter(masker)


def _message(formatter: JsonMaskingFormatter, msg: object, *args: object) -> str:
    return json.loads(formatter.format(_record(msg, *args)))["message"]


def test_output_is_one_json_object(formatter: JsonMaskingFormatter) -> None:
    line = formatter.format(_record("hello"))
    assert "\n" not in line
    payload = json.loads(line)
    assert payload["level"] == "INFO"
    assert payload["logger"] == "app.payments"
    assert payload["message"] == "hello"
    assert "T" in payload["timestamp"]
    assert "exception" not in payload


def test_dict_argument_is_masked_without_touching_caller(
    formatter: JsonMaskingFormatter,
) -> None:
    user = {"NAME": "John", "age": 30}
    message = _message(formatter, "user %s", user)
    assert message == 'user {"NAME":"[REDACTED]","age":30}'
    assert user == {"NAME": "John", "age": 30}


def test_json_string_argument_is_masked(formatter: JsonMaskingFormatter) -> None:
    message = _message(formatter, "body=%s", '{"ID": "123", "status": "ok"}')
    assert message == 'body={"ID":"[REDACTED]","status":"ok"}'


def test_plain_string_argument_with_embedded_json(formatter: JsonMaskingFormatter) -> None:
    message = _message(formatter, "%s", 'Response: {"NAME":"Doe"}')
    assert message == 'Response: {"NAME":"[REDACTED]"}'


def test_plain_string_argument_passes_through(formatter: JsonMaskingFormatter) -> None:
    assert _message(formatter, "hello %s", "world") == "hello world"


def test_simple_arguments_pass_through(formatter: JsonMaskingFormatter) -> None:
    assert _message(formatter, "%d items at %.1f, flag=%s, none=%s", 5, 2.5, True, None) == (
        "5 items at 2.5, flag=True, none=None"
    )


def test_named_placeholders(formatter: JsonMaskingFormatter) -> None:
    message = _message(formatter, "user=%(user)s count=%(count)d", {"user": {"ID": 1}, "count": 2})
    assert message == 'user={"ID":"[REDACTED]"} count=2'


def test_named_placeholder_keys_are_field_names(formatter: JsonMaskingFormatter) -> None:
    line = formatter.format(
        _record(
            "user=%(NAME)s id=%(ID)s city=%(city)s",
            {"NAME": "John Doe", "ID": "123", "city": "Oslo"},
        )
    )

    assert "John Doe" not in line
    assert json.loads(line)["message"] == "user=[REDACTED] id=[REDACTED] city=Oslo"


def test_named_placeholder_field_keeps_shape(formatter: JsonMaskingFormatter) -> None:
    message = _message(
        formatter,
        "names=%(NAME)s ids=%(ID)s missing=%(other)s",
        {"NAME": ["Ann", "Bob"], "ID": {"primary": "1", "alt": "2"}, "other": None},
    )
    assert message == (
        'names=["[REDACTED]","[REDACTED]"] ids={"primary":"[REDACTED]","alt":"[REDACTED]"} '
        "missing=None"
    )


def test_named_placeholder_none_field_is_kept(formatter: JsonMaskingFormatter) -> None:
    assert _message(formatter, "name=%(NAME)s", {"NAME": None}) == "name=None"


def test_list_and_tuple_arguments(formatter: JsonMaskingFormatter) -> None:
    message = _message(formatter, "%s | %s", [{"NAME": "a"}], ({"ID": "b"},))
    assert message == '[{"NAME":"[REDACTED]"}] | [{"ID":"[REDACTED]"}]'


def test_dataclass_argument(formatter: JsonMaskingFormatter) -> None:
    @dataclass
    class Profile:
        NAME: str
        city: str

    message = _message(formatter, "profile %s", Profile(NAME="Doe", city="Oslo"))
    assert message == 'profile {"NAME":"[REDACTED]","city":"Oslo"}'


def test_pydantic_model_argument(formatter: JsonMaskingFormatter) -> None:
    class Customer(BaseModel):
        ID: str
        tier: str

    message = _message(formatter, "customer %s", Customer(ID="c-1", tier="gold"))
    assert message == 'customer {"ID":"[REDACTED]","tier":"gold"}'


def test_message_template_with_embedded_json_is_masked(formatter: JsonMaskingFormatter) -> None:
    message = _message(formatter, 'inline {"NAME": "Doe"}')
    assert message == 'inline {"NAME":"[REDACTED]"}'


def test_non_string_message_is_treated_as_argument(formatter: JsonMaskingFormatter) -> None:
    assert _message(formatter, {"NAME": "Doe"}) == '{"NAME":"[REDACTED]"}'


def test_oversized_argument_is_redacted(masker: PiiMasker, status: StatusBuffer) -> None:
    formatter = JsonMaskingFormatter(masker)
    message = _message(formatter, "blob %s", "x" * (600 * 1024))
    assert message == "blob [REDACTED DUE TO ARG TOO LARGE: 600.0KB]"
    assert status.count(StatusKind.ARGUMENT_TOO_LARGE) == 1


def test_oversized_serialized_argument_is_redacted(masker: PiiMasker) -> None:
    formatter = JsonMaskingFormatter(masker, max_argument_bytes=1024)
    message = _message(formatter, "%s", {"data": ["y" * 100] * 20})
    assert message.startswith("[REDACTED DUE TO ARG TOO LARGE: ")


def test_unserializable_argument_is_redacted(
    masker: PiiMasker, status: StatusBuffer
) -> None:
    formatter = JsonMaskingFormatter(masker)
    loop: list = []
    loop.append(loop)
    message = _message(formatter, "value %s", loop)
    assert message == "value [REDACTED DUE TO SERIALIZATION FAILURE: ValueError]"
    assert status.count(StatusKind.SERIALIZATION_FAILURE) == 1


def test_exception_is_rendered_with_masked_message(formatter: JsonMaskingFormatter) -> None:
    try:
        raise ValueError('lookup failed for {"NAME": "Doe"}')
    except ValueError:
        record = _record("failed", exc_info=sys.exc_info())

    payload = json.loads(formatter.format(record))

    assert payload["exception"].startswith('ValueError: lookup failed for {"NAME":"[REDACTED]"}')
    assert "\tat test_exception_is_rendered_with_masked_message" in payload["exception"]


def test_fallback_line_hides_message(masker: PiiMasker, status: StatusBuffer) -> None:
    formatter = JsonMaskingFormatter(masker)
    line = formatter.format(_record("%s and %s", "secret-value"))
    assert "[LAYOUT ERROR] TypeError" in line
    assert "[INFO] app.payments" in line
    assert "secret-value" not in line
    assert status.count(StatusKind.LAYOUT_ERROR) == 1


def test_stopped_masker_yields_fallback(masker: PiiMasker) -> None:
    formatter = JsonMaskingFormatter(masker)
    masker.stop()
    line = formatter.format(_record("user %s", {"NAME": "Doe"}))
    assert "Doe" not in line
    assert "[LAYOUT ERROR] MaskerNotStartedError" in line


def test_pretty_print(masker: PiiMasker) -> None:
    formatter = JsonMaskingFormatter(masker, pretty_print=True)
    line = formatter.format(_record("hi"))
    assert line.startswith("{\n")
    assert json.loads(line)["message"] == "hi"


def test_formatter_starts_masker() -> None:
    masker = PiiMasker("NAME", MASK)
    JsonMaskingFormatter(masker)
    assert masker.is_started


def test_formatter_refuses_misconfigured_masker() -> None:
    with pytest.raises(MissingMaskTokenError):
        JsonMaskingFormatter(PiiMasker("NAME", " "))


def test_formatter_requires_masker() -> None:
    with pytest.raises(ValueError):
        JsonMaskingFormatter(None)  # type: ignore[arg-type]


def test_formatter_with_logging_handler(masker: PiiMasker) -> None:
    records: list[str] = []

    class _ListHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            records.append(self.format(record))

    handler = _ListHandler()
    handler.setFormatter(JsonMaskingFormatter(masker))
    logger = logging.getLogger("tests.formatter.handler")
    logger.propagate = False
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    try:
        logger.info("Receive check result response: %s", {"result": {"ID": "A1234567"}})
    finally:
        logger.removeHandler(handler)

    assert len(records) == 1
    assert json.loads(records[0])["message"] == (
        'Receive check result response: {"result":{"ID":"[REDACTED]"}}'
    )


def test_template_masking_covers_interpolated_json_only(formatter: JsonMaskingFormatter) -> None:
    user = {"NAME": "Doe"}

    assert _message(formatter, f"user {json.dumps(user)}") == 'user {"NAME":"[REDACTED]"}'
    # A Python repr is not JSON; pass structured values as arguments instead.
    assert _message(formatter, f"user {user}") == "user {'NAME': 'Doe'}"
