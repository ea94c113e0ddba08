from __future__ import annotations

"""Load criteria sets from YAML and persist them into SQLite."""

import json
import logging
import re
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from esgscreen.core.utils import new_identifier
from esgscreen.rules.evaluator import Rule, Severity
from esgscreen.rules.expression import ComparisonCondition, ExpressionError, parse_expression
from esgscreen.rules.validation import RuleValidationError, validate_condition
from esgscreen.rules.values import DataType
from esgscreen.screening.models import CriteriaSet
from esgscreen.screening.pipeline import NotFoundError
from esgscreen.screening.repository import ScreeningRepository

from .parameters import ParameterDefinition

logger = logging.getLogger(__name__)


class CriteriaConfigError(RuntimeError):
    """Raised when the criteria configuration file is missing or invalid."""


@dataclass(slots=True)
class CriteriaConfig:
    """Parsed criteria configuration."""

    version: int
    parameters: List[ParameterDefinition] = field(default_factory=list)
    criteria_sets: List[CriteriaSet] = field(default_factory=list)


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")


def _as_date(value: Any, context: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise CriteriaConfigError(f"{context}: invalid effective_date {value!r}") from exc


def _load_parameter(payload: Mapping[str, Any]) -> ParameterDefinition:
    name = str(payload.get("name") or "").strip()
    if not name:
        raise CriteriaConfigError("Parameter definitions require a name")
    try:
        data_type = DataType.parse(payload.get("data_type", "string"))
    except ValueError as exc:
        raise CriteriaConfigError(f"Parameter {name}: {exc}") from exc
    return ParameterDefinition(
        name=name,
        data_type=data_type,
        unit=payload.get("unit"),
        description=payload.get("description"),
    )


def _load_condition(raw: Any, context: str) -> ComparisonCondition:
    if isinstance(raw, str):
        condition = parse_expression(raw)
        if condition is None:
            raise CriteriaConfigError(f"{context}: cannot parse expression {raw!r}")
        return condition
    try:
        return ComparisonCondition.from_dict(raw)
    except ExpressionError as exc:
        raise CriteriaConfigError(f"{context}: {exc}") from exc


def _load_rule(
    set_id: str,
    index: int,
    payload: Mapping[str, Any],
    catalog: Mapping[str, DataType],
) -> Rule:
    name = str(payload.get("name") or "").strip()
    if not name:
        raise CriteriaConfigError(f"Criteria set {set_id}: rule #{index + 1} has no name")
    context = f"Criteria set {set_id}, rule '{name}'"
    if "expression" not in payload:
        raise CriteriaConfigError(f"{context}: missing expression")
    condition = _load_condition(payload["expression"], context)
    try:
        condition = validate_condition(condition, catalog)
        severity = Severity.parse(payload.get("severity"))
    except (RuleValidationError, ValueError) as exc:
        raise CriteriaConfigError(f"{context}: {exc}") from exc
    return Rule(
        rule_id=str(payload.get("id") or f"{set_id}-{_slug(name)}"),
        name=name,
        expression=condition,
        severity=severity,
        description=payload.get("description"),
        failure_message=payload.get("failure_message"),
    )


def _load_criteria_set(
    payload: Mapping[str, Any], catalog: Mapping[str, DataType]
) -> CriteriaSet:
    name = str(payload.get("name") or "").strip()
    if not name:
        raise CriteriaConfigError("Criteria sets require a name")
    version = str(payload.get("version") or "1.0")
    set_id = str(payload.get("id") or _slug(f"{name}-{version}"))
    rules_payload = payload.get("rules") or []
    if not isinstance(rules_payload, list):
        raise CriteriaConfigError(f"Criteria set {set_id}: rules must be a list")
    rules = [
        _load_rule(set_id, index, rule_payload, catalog)
        for index, rule_payload in enumerate(rules_payload)
        if isinstance(rule_payload, Mapping)
    ]
    client_id = payload.get("client_id")
    return CriteriaSet(
        criteria_set_id=set_id,
        name=name,
        version=version,
        effective_date=_as_date(payload.get("effective_date", date.today()), set_id),
        client_id=str(client_id) if client_id is not None else None,
        rules=rules,
    )


def _check_unique_ids(criteria_sets: List[CriteriaSet], path: Path) -> None:
    seen_sets: set[str] = set()
    seen_rules: set[str] = set()
    for criteria_set in criteria_sets:
        if criteria_set.criteria_set_id in seen_sets:
            raise CriteriaConfigError(
                f"Duplicate criteria set id '{criteria_set.criteria_set_id}' in {path}"
            )
        seen_sets.add(criteria_set.criteria_set_id)
        for rule in criteria_set.rules:
            if rule.rule_id in seen_rules:
                raise CriteriaConfigError(
                    f"Criteria set {criteria_set.criteria_set_id}: duplicate rule id "
                    f"'{rule.rule_id}', give the rule an explicit id"
                )
            seen_rules.add(rule.rule_id)


def load_criteria_config(
    path: Path, known_parameters: Optional[Mapping[str, DataType]] = None
) -> CriteriaConfig:
    """Load criteria sets from *path*, validating rules against the parameters.

    Parameters declared in the file extend *known_parameters*.
    """

    if not path.exists():
        raise CriteriaConfigError(f"Criteria configuration not found at {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise CriteriaConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise CriteriaConfigError(f"Criteria configuration {path} must be a mapping")

    parameters = [
        _load_parameter(entry)
        for entry in payload.get("parameters") or []
        if isinstance(entry, Mapping)
    ]
    catalog: Dict[str, DataType] = dict(known_parameters or {})
    for definition in parameters:
        catalog.setdefault(definition.name, definition.data_type)

    criteria_sets = [
        _load_criteria_set(entry, catalog)
        for entry in payload.get("criteria_sets") or []
        if isinstance(entry, Mapping)
    ]
    if not criteria_sets:
        raise CriteriaConfigError(f"No criteria sets defined in {path}")
    _check_unique_ids(criteria_sets, path)
    return CriteriaConfig(
        version=int(payload.get("version", 1)),
        parameters=parameters,
        criteria_sets=criteria_sets,
    )


class CriteriaStore:
    """Persist criteria sets and their rules into SQLite."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def save(self, criteria_set: CriteriaSet) -> None:
        """Upsert *criteria_set* and replace its rules in one transaction."""

        with sqlite3.connect(self.path) as connection:
            connection.execute("PRAGMA foreign_keys = ON")
            connection.execute(
                """
                INSERT INTO criteria_sets (criteria_set_id, name, version, effective_date, client_id)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(criteria_set_id) DO UPDATE SET
                    name=excluded.name,
                    version=excluded.version,
                    effective_date=excluded.effective_date,
                    client_id=excluded.client_id
                """,
                (
                    criteria_set.criteria_set_id,
                    criteria_set.name,
                    criteria_set.version,
                    criteria_set.effective_date.isoformat(),
                    criteria_set.client_id,
                ),
            )
            connection.execute(
                "DELETE FROM rules WHERE criteria_set_id = ?", (criteria_set.criteria_set_id,)
            )
            for position, rule in enumerate(criteria_set.rules):
                connection.execute(
                    """
                    INSERT INTO rules (
                        rule_id,
                        criteria_set_id,
                        position,
                        name,
                        description,
                        expression,
                        failure_message,
                        severity
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        rule.rule_id,
                        criteria_set.criteria_set_id,
                        position,
                        rule.name,
                        rule.description,
                        json.dumps(rule.expression.to_dict(), ensure_ascii=False),
                        rule.failure_message,
                        rule.severity.value,
                    ),
                )

    def sync(self, criteria_sets: List[CriteriaSet]) -> int:
        for criteria_set in criteria_sets:
            self.save(criteria_set)
        logger.info("Synchronized %d criteria set(s)", len(criteria_sets))
        return len(criteria_sets)

    def copy_criteria_set(
        self,
        criteria_set_id: str,
        client_id: str,
        *,
        name: Optional[str] = None,
        version: Optional[str] = None,
        effective_date: Optional[date] = None,
    ) -> CriteriaSet:
        """Clone a criteria set as a client-owned set effective today."""

        source = ScreeningRepository(self.path).criteria_set(criteria_set_id)
        if source is None:
            raise NotFoundError(f"Source criteria set not found: {criteria_set_id}")
        copy_id = new_identifier()
        copy = CriteriaSet(
            criteria_set_id=copy_id,
            name=name or f"{source.name} (Copy)",
            version=version or source.version,
            effective_date=effective_date or date.today(),
            client_id=client_id,
            rules=[
                Rule(
                    rule_id=f"{copy_id}-{index + 1}",
                    name=rule.name,
                    expression=rule.expression,
                    severity=rule.severity,
                    description=rule.description,
                    failure_message=rule.failure_message,
                )
                for index, rule in enumerate(source.rules)
            ],
        )
        self.save(copy)
        logger.info(
            "Copied criteria set '%s' to client %s as %s", source.name, client_id, copy_id
        )
        return copy


__all__ = [
    "CriteriaConfig",
    "CriteriaConfigError",
    "CriteriaStore",
    "load_criteria_config",
]
