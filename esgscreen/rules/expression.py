"""Comparison conditions and their canonical text form.

The structured form (:class:`ComparisonCondition`, serialised with
:meth:`ComparisonCondition.to_dict`) is what gets stored. The text grammar
``PARAMETER OP VALUE`` only backs rule previews and hand-written criteria
files; :func:`parse_expression` never raises and returns ``None`` for input it
does not understand.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Union

Literal = Union[bool, int, float, str]

_EXPRESSION_PATTERN = re.compile(
    r"^([A-Za-z_][A-Za-z0-9_]*)\s*(>=|<=|==|!=|>|<)\s*(.+)$",
    re.DOTALL,
)
_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")


class ExpressionError(ValueError):
    """Raised when a structured expression payload is invalid."""


class Operator(str, Enum):
    """Comparison operators supported by rule expressions."""

    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="

    @property
    def is_ordering(self) -> bool:
        return self in (Operator.LT, Operator.LE, Operator.GT, Operator.GE)

    @property
    def symbol(self) -> str:
        """Typographic symbol used in result thresholds."""

        return _SYMBOLS[self]

    @classmethod
    def from_text(cls, text: str) -> Optional["Operator"]:
        try:
            return cls(text)
        except ValueError:
            return None


_SYMBOLS = {
    Operator.EQ: "=",
    Operator.NE: "≠",
    Operator.LT: "<",
    Operator.LE: "≤",
    Operator.GT: ">",
    Operator.GE: "≥",
}


@dataclass(slots=True, frozen=True)
class ComparisonCondition:
    """``parameter operator value`` condition evaluated against one company."""

    parameter: str
    operator: Operator
    value: Literal

    type = "comparison"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "parameter": self.parameter,
            "operator": self.operator.value,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ComparisonCondition":
        """Build a condition from its stored mapping, validating every field."""

        if not isinstance(payload, Mapping):
            raise ExpressionError("Expression must be an object")
        kind = payload.get("type", "comparison")
        if kind != "comparison":
            raise ExpressionError(f"Unknown expression type: {kind}")
        parameter = payload.get("parameter")
        if not isinstance(parameter, str) or not parameter.strip():
            raise ExpressionError("Comparison must have a parameter name")
        operator = Operator.from_text(str(payload.get("operator", "")))
        if operator is None:
            raise ExpressionError(
                f"Comparison must have a valid operator, got {payload.get('operator')!r}"
            )
        if "value" not in payload:
            raise ExpressionError("Comparison must have a value")
        value = payload["value"]
        if not isinstance(value, (bool, int, float, str)):
            raise ExpressionError(
                f"Comparison value must be a number, string or boolean, got {type(value).__name__}"
            )
        if isinstance(value, float) and not math.isfinite(value):
            raise ExpressionError("Comparison value must be a finite number")
        return cls(parameter=parameter.strip(), operator=operator, value=value)

    def with_parameter(self, parameter: str) -> "ComparisonCondition":
        return ComparisonCondition(parameter=parameter, operator=self.operator, value=self.value)


def _parse_number(text: str) -> Optional[Union[int, float]]:
    if not _NUMBER_PATTERN.match(text):
        return None
    if _INTEGER_PATTERN.match(text):
        return int(text)
    number = float(text)
    return number if math.isfinite(number) else None


def _parse_value(text: str) -> Optional[Literal]:
    if text.endswith("%"):
        # 10% means the number 10; the sign is cosmetic.
        return _parse_number(text[:-1].strip())
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if len(text) >= 2 and text[0] == text[-1] and text[0] in {"'", '"'}:
        return text[1:-1]
    number = _parse_number(text)
    if number is not None:
        return number
    return text


def parse_expression(text: str) -> Optional[ComparisonCondition]:
    """Parse ``PARAMETER OP VALUE`` into a condition, or ``None`` if invalid."""

    if not isinstance(text, str):
        return None
    match = _EXPRESSION_PATTERN.match(text.strip())
    if not match:
        return None
    parameter, operator_text, value_text = match.groups()
    operator = Operator.from_text(operator_text)
    if operator is None:
        return None
    value = _parse_value(value_text.strip())
    if value is None:
        return None
    return ComparisonCondition(parameter=parameter.upper(), operator=operator, value=value)


def format_literal(value: Literal) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f"'{value}'"
    return str(value)


def format_expression(condition: ComparisonCondition) -> str:
    """Render *condition* in the canonical text grammar."""

    return f"{condition.parameter} {condition.operator.value} {format_literal(condition.value)}"


__all__ = [
    "ComparisonCondition",
    "ExpressionError",
    "Literal",
    "Operator",
    "format_expression",
    "format_literal",
    "parse_expression",
]
