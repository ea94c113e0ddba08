from __future__ import annotations

"""Evaluate a criteria set across a list of companies."""

import logging
import math
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from esgscreen.rules.evaluator import ParameterSnapshot, Rule, RuleResult, evaluate_rule

from .models import Company, CompanyScreeningResult, ScreeningOutput, ScreeningSummary

logger = logging.getLogger(__name__)


class ParameterLookup(Protocol):
    """Read access to the current parameter values of a company."""

    def current_parameter_values(
        self, company_id: str, as_of: Optional[date] = None
    ) -> Mapping[str, ParameterSnapshot]:
        """Return the latest value per parameter dated on or before *as_of*."""


def pass_rate(passed: int, total: int) -> int:
    """Percentage of passing companies, rounded half up; 0 when *total* is 0."""

    if total <= 0:
        return 0
    return int(math.floor(passed / total * 100 + 0.5))


def company_passes(rule_results: Iterable[RuleResult]) -> bool:
    """Only a failing ``exclude`` rule rejects a company."""

    passed = True
    for result in rule_results:
        if result.severity.blocking and not result.passed:
            passed = False
    return passed


def summarize(results: Sequence[CompanyScreeningResult]) -> ScreeningSummary:
    total = len(results)
    passed = sum(1 for result in results if result.passed)
    return ScreeningSummary(
        total_holdings=total,
        passed=passed,
        failed=total - passed,
        pass_rate=pass_rate(passed, total),
    )


class ScreeningEngine:
    """Apply a criteria set's rules to every target company."""

    def __init__(self, lookup: ParameterLookup) -> None:
        self._lookup = lookup

    def evaluate_criteria_set(
        self,
        rules: Sequence[Rule],
        companies: Sequence[Company],
        as_of: Optional[date] = None,
    ) -> ScreeningOutput:
        # Every snapshot is read with the same cutoff before any rule runs.
        snapshots: Dict[str, Mapping[str, ParameterSnapshot]] = {}
        for company in companies:
            if company.company_id not in snapshots:
                snapshots[company.company_id] = self._lookup.current_parameter_values(
                    company.company_id, as_of
                )

        results: List[CompanyScreeningResult] = [
            self.screen_company(company, rules, snapshots[company.company_id])
            for company in companies
        ]
        summary = summarize(results)
        logger.debug(
            "Evaluated %d rule(s) across %d company(ies): %d passed, %d failed",
            len(rules),
            summary.total_holdings,
            summary.passed,
            summary.failed,
        )
        return ScreeningOutput(results=results, summary=summary, as_of_date=as_of)

    @staticmethod
    def screen_company(
        company: Company,
        rules: Sequence[Rule],
        snapshot: Mapping[str, ParameterSnapshot],
    ) -> CompanyScreeningResult:
        rule_results = [evaluate_rule(rule, snapshot) for rule in rules]
        passed = company_passes(rule_results)
        logger.debug(
            "Company %s (%s) %s with %d failing rule(s)",
            company.name,
            company.company_id,
            "passed" if passed else "failed",
            sum(1 for result in rule_results if not result.passed),
        )
        return CompanyScreeningResult(company=company, passed=passed, rule_results=rule_results)


__all__ = [
    "ParameterLookup",
    "ScreeningEngine",
    "company_passes",
    "pass_rate",
    "summarize",
]
