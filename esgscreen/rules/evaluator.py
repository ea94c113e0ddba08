"""Evaluation of a single rule against one company's parameter snapshot."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .expression import ComparisonCondition, format_literal
from .values import Comparison, DataType, Outcome, Scalar, compare

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    """How a failing rule affects the company verdict."""

    EXCLUDE = "exclude"
    WARN = "warn"
    INFO = "info"

    @property
    def blocking(self) -> bool:
        return self is Severity.EXCLUDE

    @classmethod
    def parse(cls, value: str | None) -> "Severity":
        if value is None or value == "":
            return cls.EXCLUDE
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(
                f"Unsupported severity '{value}'; expected one of exclude, warn, info"
            ) from exc


@dataclass(slots=True, frozen=True)
class Rule:
    """A condition belonging to a criteria set."""

    rule_id: str
    name: str
    expression: ComparisonCondition
    severity: Severity = Severity.EXCLUDE
    description: Optional[str] = None
    failure_message: Optional[str] = None


@dataclass(slots=True, frozen=True)
class ParameterSnapshot:
    """Current value of one parameter for one company."""

    name: str
    value: str
    data_type: DataType
    as_of_date: Optional[date] = None
    unit: Optional[str] = None
    source: Optional[str] = None


@dataclass(slots=True)
class RuleResult:
    """Outcome of one rule for one company."""

    rule_id: str
    rule_name: str
    passed: bool
    severity: Severity
    failure_reason: Optional[str] = None
    actual_value: Optional[Scalar] = None
    threshold: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "ruleId": self.rule_id,
            "ruleName": self.rule_name,
            "passed": self.passed,
            "severity": self.severity.value,
        }
        if self.failure_reason is not None:
            payload["failureReason"] = self.failure_reason
        if self.actual_value is not None:
            payload["actualValue"] = self.actual_value
        if self.threshold is not None:
            payload["threshold"] = self.threshold
        return payload


def render_failure_message(
    template: str,
    condition: ComparisonCondition,
    actual: Optional[Scalar],
) -> str:
    """Fill ``{parameter}``, ``{operator}``, ``{expected}`` and ``{actual}``.

    Templates with unknown placeholders or stray braces are returned verbatim.
    """

    fields = dict(
        parameter=condition.parameter,
        operator=condition.operator.value,
        expected=format_literal(condition.value),
        actual="n/a" if actual is None else _display(actual),
    )
    try:
        return template.format_map(fields)
    except (KeyError, IndexError, ValueError):
        return template


def _display(value: Scalar) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def threshold_label(condition: ComparisonCondition) -> str:
    value = condition.value
    shown = _display(value) if not isinstance(value, str) else value
    return f"{condition.operator.symbol} {shown}"


def lookup_snapshot(
    parameter: str,
    snapshot: Mapping[str, ParameterSnapshot],
) -> Optional[ParameterSnapshot]:
    """Find *parameter* in *snapshot*, ignoring case."""

    direct = snapshot.get(parameter)
    if direct is not None:
        return direct
    wanted = parameter.upper()
    for name, entry in snapshot.items():
        if name.upper() == wanted:
            return entry
    return None


def _failure_reason(rule: Rule, comparison: Comparison) -> str:
    condition = rule.expression
    if comparison.outcome is Outcome.MALFORMED:
        return f"Malformed value for {condition.parameter}: {comparison.detail}"
    if comparison.outcome is Outcome.INCOMPATIBLE:
        return f"Rule misconfigured for {condition.parameter}: {comparison.detail}"
    if rule.failure_message:
        return render_failure_message(rule.failure_message, condition, comparison.actual)
    return (
        f"{condition.parameter} {condition.operator.value} "
        f"{format_literal(condition.value)} failed, actual: {_display(comparison.actual)}"
    )


def evaluate_rule(rule: Rule, snapshot: Mapping[str, ParameterSnapshot]) -> RuleResult:
    """Evaluate *rule* against a company's parameter *snapshot*."""

    condition = rule.expression
    threshold = threshold_label(condition)
    entry = lookup_snapshot(condition.parameter, snapshot)
    if entry is None:
        return RuleResult(
            rule_id=rule.rule_id,
            rule_name=rule.name,
            passed=False,
            severity=rule.severity,
            failure_reason=f"No data available for {condition.parameter}",
            threshold=threshold,
            metadata={"outcome": "missing"},
        )

    comparison = compare(entry.value, entry.data_type, condition.operator, condition.value)
    if comparison.outcome in (Outcome.MALFORMED, Outcome.INCOMPATIBLE):
        logger.warning(
            "Rule '%s' failed closed on %s: %s",
            rule.name,
            condition.parameter,
            comparison.detail,
        )
    metadata: Dict[str, Any] = {"outcome": comparison.outcome.value}
    if entry.as_of_date is not None:
        metadata["as_of_date"] = entry.as_of_date.isoformat()
    if entry.source:
        metadata["source"] = entry.source
    return RuleResult(
        rule_id=rule.rule_id,
        rule_name=rule.name,
        passed=comparison.passed,
        severity=rule.severity,
        failure_reason=None if comparison.passed else _failure_reason(rule, comparison),
        actual_value=comparison.actual,
        threshold=threshold,
        metadata=metadata,
    )


__all__ = [
    "ParameterSnapshot",
    "Rule",
    "RuleResult",
    "Severity",
    "evaluate_rule",
    "lookup_snapshot",
    "render_failure_message",
    "threshold_label",
]
