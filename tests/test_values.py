from __future__ import annotations

import pytest

from esgscreen.rules.expression import Operator
from esgscreen.rules.values import (
    DataType,
    IncompatibleComparison,
    MalformedValue,
    Outcome,
    StoredValue,
    compare,
    compare_values,
    decode_stored_value,
)


def test_decode_number_accepts_percent_strings() -> None:
    assert decode_stored_value('"45%"', DataType.NUMBER) == StoredValue(DataType.NUMBER, 45.0)
    assert decode_stored_value("5000", DataType.NUMBER) == StoredValue(DataType.NUMBER, 5000.0)


@pytest.mark.parametrize(
    "raw, data_type",
    [
        ("not json", DataType.NUMBER),
        ('"lots"', DataType.NUMBER),
        ("null", DataType.STRING),
        ("[1, 2]", DataType.NUMBER),
        ('"maybe"', DataType.BOOLEAN),
        ("true", DataType.NUMBER),
    ],
)
def test_decode_reports_malformed_values(raw: str, data_type: DataType) -> None:
    assert isinstance(decode_stored_value(raw, data_type), MalformedValue)


def test_decode_boolean_from_text() -> None:
    assert decode_stored_value('"TRUE"', DataType.BOOLEAN) == StoredValue(DataType.BOOLEAN, True)


def test_numbers_compare_numerically() -> None:
    assert compare_values(5000.0, Operator.LT, 500.0) is False
    assert compare_values(30.0, Operator.GE, 30.0) is True


def test_number_equality_is_exact() -> None:
    assert compare_values(0.1 + 0.2, Operator.EQ, 0.3) is False


def test_strings_compare_case_sensitively_by_code_point() -> None:
    assert compare_values("high", Operator.EQ, "High") is False
    assert compare_values("B", Operator.LT, "a") is True


def test_boolean_ordering_is_incompatible() -> None:
    with pytest.raises(IncompatibleComparison):
        compare_values(True, Operator.GT, False)


def test_compare_reports_failure_detail() -> None:
    result = compare("5000", DataType.NUMBER, Operator.LT, 500)

    assert result.outcome is Outcome.FAILED
    assert result.actual == 5000.0
    assert result.detail == "< 500"


def test_compare_never_raises_on_bad_input() -> None:
    malformed = compare("{", DataType.NUMBER, Operator.LT, 500)
    incompatible = compare("true", DataType.BOOLEAN, Operator.LT, True)

    assert malformed.outcome is Outcome.MALFORMED
    assert incompatible.outcome is Outcome.INCOMPATIBLE
    assert not malformed.passed and not incompatible.passed


def test_unknown_data_type_is_rejected() -> None:
    with pytest.raises(ValueError):
        DataType.parse("date")


@pytest.mark.parametrize(
    "stored, data_type, operator, expected",
    [
        ("5000", DataType.NUMBER, Operator.NE, True),
        ("true", DataType.BOOLEAN, Operator.NE, 5),
        ("5000", DataType.NUMBER, Operator.NE, "high"),
        ("5000", DataType.NUMBER, Operator.LT, "high"),
        ('"high"', DataType.STRING, Operator.NE, False),
    ],
)
def test_compare_rejects_literal_of_the_wrong_type(
    stored: str, data_type: DataType, operator: Operator, expected
) -> None:
    result = compare(stored, data_type, operator, expected)

    assert result.outcome is Outcome.INCOMPATIBLE
    assert not result.passed


def test_compare_coerces_literals_that_fit_the_type() -> None:
    assert compare("5000", DataType.NUMBER, Operator.GT, "500").passed
    assert compare("false", DataType.BOOLEAN, Operator.EQ, "FALSE").passed
    assert compare('"42"', DataType.STRING, Operator.EQ, 42).passed
