"""Rule checks performed when a criteria set is authored."""
from __future__ import annotations

from typing import Iterable, Mapping

from .evaluator import Rule
from .expression import ComparisonCondition
from .values import (
    DataType,
    IncompatibleComparison,
    check_literal,
    coerce_literal,
    compare_values,
)


class RuleValidationError(ValueError):
    """Raised when a rule cannot be evaluated against the parameter catalog."""


def _sample(data_type: DataType):
    if data_type is DataType.NUMBER:
        return 0.0
    if data_type is DataType.BOOLEAN:
        return False
    return ""


def resolve_parameter(parameter: str, catalog: Mapping[str, DataType]) -> str:
    """Return the catalog spelling of *parameter*, matching case-insensitively."""

    if parameter in catalog:
        return parameter
    wanted = parameter.upper()
    for name in catalog:
        if name.upper() == wanted:
            return name
    raise RuleValidationError(f"Unknown parameter '{parameter}'")


def validate_condition(
    condition: ComparisonCondition,
    catalog: Mapping[str, DataType],
) -> ComparisonCondition:
    """Check *condition* against *catalog* and return it with the canonical name."""

    name = resolve_parameter(condition.parameter, catalog)
    data_type = catalog[name]
    expected = coerce_literal(condition.value, data_type)
    try:
        check_literal(expected, data_type)
        compare_values(_sample(data_type), condition.operator, expected)
    except IncompatibleComparison as exc:
        raise RuleValidationError(f"Parameter '{name}': {exc}") from exc
    return condition.with_parameter(name)


def validate_rules(rules: Iterable[Rule], catalog: Mapping[str, DataType]) -> list[str]:
    """Return a list of problems found in *rules* (empty when all are valid)."""

    problems: list[str] = []
    for rule in rules:
        try:
            validate_condition(rule.expression, catalog)
        except RuleValidationError as exc:
            problems.append(f"{rule.name}: {exc}")
    return problems


__all__ = [
    "RuleValidationError",
    "resolve_parameter",
    "validate_condition",
    "validate_rules",
]
