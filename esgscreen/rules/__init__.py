"""Rule expressions, value comparison and per-rule evaluation."""
from __future__ import annotations

from .evaluator import ParameterSnapshot, Rule, RuleResult, Severity, evaluate_rule
from .expression import (
    ComparisonCondition,
    ExpressionError,
    Operator,
    format_expression,
    parse_expression,
)
from .validation import RuleValidationError, validate_condition, validate_rules
from .values import DataType, IncompatibleComparison, compare

__all__ = [
    "ComparisonCondition",
    "DataType",
    "ExpressionError",
    "IncompatibleComparison",
    "Operator",
    "ParameterSnapshot",
    "Rule",
    "RuleResult",
    "RuleValidationError",
    "Severity",
    "compare",
    "evaluate_rule",
    "format_expression",
    "parse_expression",
    "validate_condition",
    "validate_rules",
]
