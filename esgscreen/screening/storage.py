from __future__ import annotations

"""Persistence utilities for screening results."""

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from esgscreen.core.utils import pipeline_version
from esgscreen.rules.evaluator import Rule, RuleResult, Severity
from esgscreen.rules.expression import ComparisonCondition
from esgscreen.schema import DatabaseSchema

from .models import (
    Company,
    CompanyScreeningResult,
    CriteriaSet,
    ScreeningResult,
    ScreeningSummary,
    WeightSummary,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ResultHeader:
    """Listing entry for a stored screening result."""

    id: str
    screened_at: datetime
    as_of_date: Optional[date]
    criteria_set_id: str
    criteria_set_name: str
    target: Dict[str, Any]
    summary: ScreeningSummary
    portfolio_id: Optional[str] = None
    run_id: Optional[str] = None
    pipeline_version: Optional[str] = None


def _rule_payload(rule: Rule) -> Dict[str, Any]:
    return {
        "id": rule.rule_id,
        "name": rule.name,
        "description": rule.description,
        "expression": rule.expression.to_dict(),
        "failureMessage": rule.failure_message,
        "severity": rule.severity.value,
    }


def _criteria_set_payload(criteria_set: CriteriaSet) -> Dict[str, Any]:
    payload = criteria_set.to_dict()
    payload["rules"] = [_rule_payload(rule) for rule in criteria_set.rules]
    return payload


def _criteria_set_from_payload(payload: Mapping[str, Any]) -> CriteriaSet:
    return CriteriaSet(
        criteria_set_id=payload["id"],
        name=payload["name"],
        version=payload["version"],
        effective_date=date.fromisoformat(payload["effectiveDate"]),
        client_id=payload.get("clientId"),
        rules=[
            Rule(
                rule_id=entry["id"],
                name=entry["name"],
                expression=ComparisonCondition.from_dict(entry["expression"]),
                severity=Severity.parse(entry.get("severity")),
                description=entry.get("description"),
                failure_message=entry.get("failureMessage"),
            )
            for entry in payload.get("rules", [])
        ],
    )


def _rule_result_payload(result: RuleResult) -> Dict[str, Any]:
    payload = result.to_dict()
    if result.metadata:
        payload["metadata"] = result.metadata
    return payload


def _rule_result_from_payload(payload: Mapping[str, Any]) -> RuleResult:
    return RuleResult(
        rule_id=payload["ruleId"],
        rule_name=payload["ruleName"],
        passed=bool(payload["passed"]),
        severity=Severity.parse(payload.get("severity")),
        failure_reason=payload.get("failureReason"),
        actual_value=payload.get("actualValue"),
        threshold=payload.get("threshold"),
        metadata=dict(payload.get("metadata") or {}),
    )


def _summary_from_payload(payload: Mapping[str, Any]) -> ScreeningSummary:
    return ScreeningSummary(
        total_holdings=payload["totalHoldings"],
        passed=payload["passed"],
        failed=payload["failed"],
        pass_rate=payload["passRate"],
    )


def _weights_from_payload(payload: Optional[Mapping[str, Any]]) -> Optional[WeightSummary]:
    if not payload:
        return None
    return WeightSummary(
        total_weight=payload["totalWeight"],
        passed_weight=payload["passedWeight"],
        excluded_weight=payload["excludedWeight"],
        warning=payload.get("warning"),
    )


def _optional_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


class ScreeningStore:
    """Write screening results to SQLite and read them back."""

    def __init__(self, path: Path) -> None:
        self.path = path
        DatabaseSchema(path).ensure()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self.path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def persist(self, result: ScreeningResult) -> str:
        """Store *result* in a single transaction and return its identifier."""

        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO screening_results (
                    id,
                    run_id,
                    screened_at,
                    as_of_date,
                    criteria_set_id,
                    portfolio_id,
                    criteria_set,
                    target,
                    summary,
                    weights,
                    pipeline_version
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result.id,
                    result.run_id,
                    result.screened_at.isoformat(),
                    result.as_of_date.isoformat() if result.as_of_date else None,
                    result.criteria_set.criteria_set_id,
                    result.portfolio_id,
                    json.dumps(_criteria_set_payload(result.criteria_set), ensure_ascii=False),
                    json.dumps(result.target, ensure_ascii=False),
                    json.dumps(result.summary.to_dict()),
                    json.dumps(result.weights.to_dict(), ensure_ascii=False)
                    if result.weights is not None
                    else None,
                    pipeline_version(),
                ),
            )
            for position, company_result in enumerate(result.results):
                self._insert_company_result(connection, result.id, position, company_result)
        logger.debug("Persisted screening result %s", result.id)
        return result.id

    def _insert_company_result(
        self,
        connection: sqlite3.Connection,
        result_id: str,
        position: int,
        company_result: CompanyScreeningResult,
    ) -> None:
        rule_results = json.dumps(
            [_rule_result_payload(entry) for entry in company_result.rule_results],
            ensure_ascii=False,
        )
        connection.execute(
            """
            INSERT INTO screening_company_results (
                result_id, position, company_id, company_name, passed, rule_results
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                result_id,
                position,
                company_result.company.company_id,
                company_result.company.name,
                int(company_result.passed),
                rule_results,
            ),
        )

    def list_results(
        self,
        *,
        portfolio_id: Optional[str] = None,
        criteria_set_id: Optional[str] = None,
        run_id: Optional[str] = None,
    ) -> List[ResultHeader]:
        """Stored results, newest first, optionally filtered."""

        clauses: List[str] = []
        params: List[Any] = []
        if portfolio_id is not None:
            clauses.append("portfolio_id = ?")
            params.append(portfolio_id)
        if criteria_set_id is not None:
            clauses.append("criteria_set_id = ?")
            params.append(criteria_set_id)
        if run_id is not None:
            clauses.append("run_id = ?")
            params.append(run_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._connect() as connection:
            rows = connection.execute(
                f"""
                SELECT id, run_id, screened_at, as_of_date, criteria_set_id,
                       portfolio_id, criteria_set, target, summary, pipeline_version
                FROM screening_results
                {where}
                ORDER BY screened_at DESC, id
                """,
                params,
            ).fetchall()
        headers: List[ResultHeader] = []
        for row in rows:
            criteria_set = json.loads(row["criteria_set"])
            headers.append(
                ResultHeader(
                    id=row["id"],
                    screened_at=datetime.fromisoformat(row["screened_at"]),
                    as_of_date=_optional_date(row["as_of_date"]),
                    criteria_set_id=row["criteria_set_id"],
                    criteria_set_name=criteria_set.get("name", row["criteria_set_id"]),
                    target=json.loads(row["target"]),
                    summary=_summary_from_payload(json.loads(row["summary"])),
                    portfolio_id=row["portfolio_id"],
                    run_id=row["run_id"],
                    pipeline_version=row["pipeline_version"],
                )
            )
        return headers

    def get(self, result_id: str) -> Optional[ScreeningResult]:
        with self._connect() as connection:
            row = connection.execute(
                "SELECT * FROM screening_results WHERE id = ?", (result_id,)
            ).fetchone()
            if row is None:
                return None
            company_rows = connection.execute(
                """
                SELECT company_id, company_name, passed, rule_results
                FROM screening_company_results
                WHERE result_id = ?
                ORDER BY position
                """,
                (result_id,),
            ).fetchall()

        results = [
            CompanyScreeningResult(
                company=Company(company_id=entry["company_id"], name=entry["company_name"]),
                passed=bool(entry["passed"]),
                rule_results=[
                    _rule_result_from_payload(payload)
                    for payload in json.loads(entry["rule_results"])
                ],
            )
            for entry in company_rows
        ]
        return ScreeningResult(
            id=row["id"],
            screened_at=datetime.fromisoformat(row["screened_at"]),
            as_of_date=_optional_date(row["as_of_date"]),
            criteria_set=_criteria_set_from_payload(json.loads(row["criteria_set"])),
            summary=_summary_from_payload(json.loads(row["summary"])),
            results=results,
            target=json.loads(row["target"]),
            portfolio_id=row["portfolio_id"],
            weights=_weights_from_payload(json.loads(row["weights"]) if row["weights"] else None),
            run_id=row["run_id"],
        )

    def results_for_run(self, run_id: str) -> List[ScreeningResult]:
        results: List[ScreeningResult] = []
        for header in self.list_results(run_id=run_id):
            result = self.get(header.id)
            if result is not None:
                results.append(result)
        return results

    def delete(self, result_id: str) -> bool:
        """Remove a stored result; returns ``False`` when it does not exist."""

        with self._connect() as connection:
            connection.execute(
                "DELETE FROM screening_company_results WHERE result_id = ?", (result_id,)
            )
            cursor = connection.execute(
                "DELETE FROM screening_results WHERE id = ?", (result_id,)
            )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted screening result %s", result_id)
        return deleted


__all__ = ["ResultHeader", "ScreeningStore"]
