from __future__ import annotations

import pytest

from pii_log_masking.errors import (
    ConfigError,
    MissingFieldNamesError,
    MissingMaskTokenError,
    NoValidFieldNamesError,
)
from pii_log_masking.fields import (
    MAX_FIELD_NAME_LENGTH,
    clean_field_name,
    configure,
    parse_field_names,
)


def test_configure_blank_field_list_is_missing() -> None:
    with pytest.raises(MissingFieldNamesError, match="maskedFields"):
        configure("", "X")


def test_configure_blank_mask_token_is_missing() -> None:
    with pytest.raises(MissingMaskTokenError, match="maskToken"):
        configure("NAME", "")


def test_configure_only_invalid_characters_has_no_valid_names() -> None:
    with pytest.raises(NoValidFieldNamesError, match="no valid entries"):
        configure("!!!", "X")


def test_configuration_errors_are_distinct_config_errors() -> None:
    errors = []
    for fields, token in (("", "X"), ("NAME", ""), ("!!!,@@@,###", "X")):
        with pytest.raises(ConfigError) as exc_info:
            configure(fields, token)
        errors.append(type(exc_info.value))
    assert len(set(errors)) == 3


def test_configure_none_and_whitespace_inputs() -> None:
    with pytest.raises(MissingFieldNamesError):
        configure(None, "X")
    with pytest.raises(MissingFieldNamesError):
        configure("   ", "X")
    with pytest.raises(MissingMaskTokenError):
        configure("NAME", None)
    with pytest.raises(MissingMaskTokenError):
        configure("NAME", "   ")


def test_mask_token_is_checked_before_field_names() -> None:
    with pytest.raises(MissingMaskTokenError):
        configure("", "")


def test_parse_field_names_trims_and_strips_disallowed_characters() -> None:
    names = parse_field_names(" NAME , id-number ,,e.mail, ID_2 ")
    assert names == frozenset({"NAME", "idnumber", "email", "ID_2"})


def test_parse_field_names_drops_over_length_tokens() -> None:
    too_long = "a" * (MAX_FIELD_NAME_LENGTH + 1)
    at_limit = "b" * MAX_FIELD_NAME_LENGTH
    names = parse_field_names(f"{too_long},{at_limit},NAME")
    assert names == frozenset({at_limit, "NAME"})


def test_clean_field_name() -> None:
    assert clean_field_name("  SSN ") == "SSN"
    assert clean_field_name("$$$") is None
    assert clean_field_name("") is None


def test_matching_is_exact_and_case_sensitive() -> None:
    config = configure("NAME", "X")
    assert config.matches("NAME")
    assert not config.matches("name")
    assert not config.matches("NAME ")
    assert not config.matches(1)


def test_configure_carries_limits() -> None:
    config = configure("NAME", "X", max_recursion_depth=3, scan_window=500)
    assert config.max_recursion_depth == 3
    assert config.scan_window == 500
    assert config.mask_token == "X"


def test_configure_rejects_non_positive_limits() -> None:
    with pytest.raises(ValueError, match="max_recursion_depth"):
        configure("NAME", "X", max_recursion_depth=0)
    with pytest.raises(ValueError, match="scan_window"):
        configure("NAME", "X", scan_window=0)


def test_config_repr_omits_mask_token() -> None:
    config = configure("NAME", "TOKEN-VALUE")
    assert "TOKEN-VALUE" not in repr(config)
    assert "NAME" in repr(config)
