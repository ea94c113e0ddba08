from __future__ import annotations

import pytest

from esgscreen.rules.expression import (
    ComparisonCondition,
    ExpressionError,
    Operator,
    format_expression,
    parse_expression,
)


def test_parse_numeric_comparison() -> None:
    condition = parse_expression("carbon_emissions < 500")

    assert condition == ComparisonCondition("CARBON_EMISSIONS", Operator.LT, 500)


def test_parse_percent_shorthand_is_plain_number() -> None:
    condition = parse_expression("board_diversity_pct >= 30%")

    assert condition is not None
    assert condition.value == 30
    assert condition.operator is Operator.GE


def test_parse_boolean_and_quoted_string() -> None:
    boolean = parse_expression("has_environmental_policy == TRUE")
    quoted = parse_expression("controversy_level != 'high'")

    assert boolean is not None and boolean.value is True
    assert quoted is not None and quoted.value == "high"


def test_parse_bare_word_stays_text() -> None:
    condition = parse_expression("controversy_level == low")

    assert condition is not None
    assert condition.value == "low"


@pytest.mark.parametrize(
    "text",
    ["", "carbon_emissions", "carbon_emissions =< 5", "< 500", "1abc > 2", "rate > 5x%"],
)
def test_parse_rejects_malformed_input(text: str) -> None:
    assert parse_expression(text) is None


def test_parse_ignores_non_strings() -> None:
    assert parse_expression(None) is None  # type: ignore[arg-type]


@pytest.mark.parametrize("operator", list(Operator))
@pytest.mark.parametrize(
    "value",
    [0, 500, -42, 499.5, -0.25, 1e-07, 2.5e+20, True, False, "medium", "", "it's", "two\nlines"],
)
def test_format_then_parse_preserves_meaning(operator: Operator, value) -> None:
    condition = ComparisonCondition("CARBON_EMISSIONS", operator, value)

    assert parse_expression(format_expression(condition)) == condition


def test_format_expression_quotes_text() -> None:
    condition = ComparisonCondition("controversy_level", Operator.NE, "high")

    assert format_expression(condition) == "controversy_level != 'high'"


def test_structured_form_round_trip() -> None:
    condition = ComparisonCondition("carbon_emissions", Operator.LT, 500)

    assert ComparisonCondition.from_dict(condition.to_dict()) == condition
    assert condition.to_dict()["type"] == "comparison"


@pytest.mark.parametrize(
    "payload",
    [
        {"parameter": "x", "operator": "=~", "value": 1},
        {"parameter": "", "operator": "==", "value": 1},
        {"parameter": "x", "operator": "=="},
        {"parameter": "x", "operator": "==", "value": [1, 2]},
        {"type": "and", "parameter": "x", "operator": "==", "value": 1},
        {"parameter": "x", "operator": "<", "value": float("nan")},
    ],
)
def test_structured_form_rejects_invalid_payloads(payload: dict) -> None:
    with pytest.raises(ExpressionError):
        ComparisonCondition.from_dict(payload)
