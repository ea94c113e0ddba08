"""Decoding of stored parameter values and type-aware comparison."""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .expression import Literal, Operator, format_literal


Scalar = Union[bool, float, str]


class DataType(str, Enum):
    """Declared type of a parameter."""

    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"

    @classmethod
    def parse(cls, value: str) -> "DataType":
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unsupported data type '{value}'") from exc


class IncompatibleComparison(ValueError):
    """Raised when an operator cannot be applied to the operand types."""


@dataclass(slots=True, frozen=True)
class StoredValue:
    """A stored value decoded against its parameter's data type."""

    data_type: DataType
    value: Scalar


@dataclass(slots=True, frozen=True)
class MalformedValue:
    """A stored value that could not be decoded."""

    raw: str
    reason: str


class Outcome(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    MALFORMED = "malformed"
    INCOMPATIBLE = "incompatible"


@dataclass(slots=True, frozen=True)
class Comparison:
    """Result of comparing one stored value against a rule literal."""

    outcome: Outcome
    actual: Optional[Scalar] = None
    detail: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.outcome is Outcome.PASSED


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _text(value: Scalar) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def decode_stored_value(raw: str, data_type: DataType) -> Union[StoredValue, MalformedValue]:
    """Decode JSON text *raw* into a scalar of *data_type*."""

    if raw is None:
        return MalformedValue(raw="", reason="value is empty")
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        return MalformedValue(raw=str(raw), reason=f"invalid JSON ({exc})")

    if payload is None:
        return MalformedValue(raw=raw, reason="value is null")
    if isinstance(payload, (list, dict)):
        return MalformedValue(raw=raw, reason="value is not a scalar")

    if data_type is DataType.NUMBER:
        if _is_number(payload):
            number = float(payload)
        elif isinstance(payload, str):
            try:
                number = float(payload.replace("%", "").strip())
            except ValueError:
                return MalformedValue(raw=raw, reason=f"'{payload}' is not a number")
        else:
            return MalformedValue(raw=raw, reason="expected a number")
        if not math.isfinite(number):
            return MalformedValue(raw=raw, reason="number is not finite")
        return StoredValue(DataType.NUMBER, number)

    if data_type is DataType.BOOLEAN:
        if isinstance(payload, bool):
            return StoredValue(DataType.BOOLEAN, payload)
        if isinstance(payload, str) and payload.strip().lower() in {"true", "false"}:
            return StoredValue(DataType.BOOLEAN, payload.strip().lower() == "true")
        return MalformedValue(raw=raw, reason="expected a boolean")

    if isinstance(payload, str):
        return StoredValue(DataType.STRING, payload)
    return StoredValue(DataType.STRING, _text(payload))


def coerce_literal(expected: Literal, data_type: DataType) -> Scalar:
    """Convert a rule literal towards *data_type* where no information is lost."""

    if data_type is DataType.NUMBER and isinstance(expected, str):
        try:
            return float(expected.replace("%", "").strip())
        except ValueError:
            return expected
    if data_type is DataType.BOOLEAN and isinstance(expected, str):
        lowered = expected.strip().lower()
        if lowered in {"true", "false"}:
            return lowered == "true"
    if _is_number(expected):
        return float(expected)
    return expected


def check_literal(expected: Scalar, data_type: DataType) -> None:
    """Raise :class:`IncompatibleComparison` when *expected* cannot stand for *data_type*."""

    if data_type is DataType.NUMBER and not _is_number(expected):
        raise IncompatibleComparison(
            f"numeric parameter compared with {format_literal(expected)}"
        )
    if data_type is DataType.BOOLEAN and not isinstance(expected, bool):
        raise IncompatibleComparison(
            f"boolean parameter compared with {format_literal(expected)}"
        )
    if data_type is DataType.STRING and isinstance(expected, bool):
        raise IncompatibleComparison(
            f"text parameter compared with {format_literal(expected)}"
        )


def compare_values(actual: Scalar, operator: Operator, expected: Scalar) -> bool:
    """Apply *operator* to two decoded operands.

    Numbers compare numerically with exact equality. Booleans only support
    ``==``/``!=``; anything else involving a string compares as text by code
    point.
    """

    if isinstance(actual, bool) or isinstance(expected, bool):
        if operator.is_ordering:
            raise IncompatibleComparison(
                f"operator '{operator.value}' cannot be applied to a boolean"
            )
        equal = type(actual) is type(expected) and actual == expected
        return equal if operator is Operator.EQ else not equal

    if _is_number(actual) and _is_number(expected):
        left, right = float(actual), float(expected)
    else:
        left, right = _text(actual), _text(expected)

    if operator is Operator.EQ:
        return left == right
    if operator is Operator.NE:
        return left != right
    if operator is Operator.LT:
        return left < right
    if operator is Operator.LE:
        return left <= right
    if operator is Operator.GT:
        return left > right
    return left >= right


def compare(
    stored: str,
    data_type: DataType,
    operator: Operator,
    expected: Literal,
) -> Comparison:
    """Compare a stored JSON value against *expected*; never raises."""

    decoded = decode_stored_value(stored, data_type)
    if isinstance(decoded, MalformedValue):
        return Comparison(Outcome.MALFORMED, detail=decoded.reason)
    target = coerce_literal(expected, data_type)
    try:
        check_literal(target, data_type)
        passed = compare_values(decoded.value, operator, target)
    except IncompatibleComparison as exc:
        return Comparison(Outcome.INCOMPATIBLE, actual=decoded.value, detail=str(exc))
    if passed:
        return Comparison(Outcome.PASSED, actual=decoded.value)
    return Comparison(
        Outcome.FAILED,
        actual=decoded.value,
        detail=f"{operator.value} {format_literal(expected)}",
    )


__all__ = [
    "Comparison",
    "DataType",
    "IncompatibleComparison",
    "MalformedValue",
    "Outcome",
    "Scalar",
    "StoredValue",
    "check_literal",
    "coerce_literal",
    "compare",
    "compare_values",
    "decode_stored_value",
]
