from __future__ import annotations

"""Dataclasses used across the screening pipeline."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from esgscreen.rules.evaluator import Rule, RuleResult


@dataclass(slots=True, frozen=True)
class Company:
    """Basic metadata about a screened company."""

    company_id: str
    name: str
    ticker: Optional[str] = None
    sector: Optional[str] = None
    region: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.company_id, "name": self.name}


@dataclass(slots=True)
class Holding:
    """A company held in a portfolio with its weight in percentage points."""

    company: Company
    weight: float


@dataclass(slots=True)
class Portfolio:
    portfolio_id: str
    name: str
    client_id: Optional[str]
    holdings: List[Holding] = field(default_factory=list)

    @property
    def companies(self) -> List[Company]:
        return [holding.company for holding in self.holdings]


@dataclass(slots=True)
class CriteriaSet:
    """A named, versioned collection of rules applied together."""

    criteria_set_id: str
    name: str
    version: str
    effective_date: date
    client_id: Optional[str] = None
    rules: List[Rule] = field(default_factory=list)

    @property
    def is_global(self) -> bool:
        return self.client_id is None

    def visible_to(self, client_id: Optional[str]) -> bool:
        return self.is_global or self.client_id == client_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.criteria_set_id,
            "name": self.name,
            "version": self.version,
            "effectiveDate": self.effective_date.isoformat(),
            "isGlobal": self.is_global,
            "clientId": self.client_id,
        }


@dataclass(slots=True)
class CompanyScreeningResult:
    """Verdict and rule breakdown for one company."""

    company: Company
    passed: bool
    rule_results: List[RuleResult]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "company": self.company.to_dict(),
            "passed": self.passed,
            "ruleResults": [result.to_dict() for result in self.rule_results],
        }


@dataclass(slots=True, frozen=True)
class ScreeningSummary:
    total_holdings: int
    passed: int
    failed: int
    pass_rate: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalHoldings": self.total_holdings,
            "passed": self.passed,
            "failed": self.failed,
            "passRate": self.pass_rate,
        }


@dataclass(slots=True)
class ScreeningOutput:
    """Container for the screening engine results."""

    results: List[CompanyScreeningResult]
    summary: ScreeningSummary
    as_of_date: Optional[date]


@dataclass(slots=True, frozen=True)
class WeightSummary:
    """Portfolio-weighted view of a screening."""

    total_weight: float
    passed_weight: float
    excluded_weight: float
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "totalWeight": self.total_weight,
            "passedWeight": self.passed_weight,
            "excludedWeight": self.excluded_weight,
        }
        if self.warning:
            payload["warning"] = self.warning
        return payload


@dataclass(slots=True)
class ScreeningResult:
    """Persisted outcome of one screening run."""

    id: str
    screened_at: datetime
    as_of_date: Optional[date]
    criteria_set: CriteriaSet
    summary: ScreeningSummary
    results: List[CompanyScreeningResult]
    target: Dict[str, Any] = field(default_factory=dict)
    portfolio_id: Optional[str] = None
    weights: Optional[WeightSummary] = None
    run_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "screenedAt": self.screened_at.isoformat(),
            "asOfDate": self.as_of_date.isoformat() if self.as_of_date else None,
            "criteriaSet": self.criteria_set.to_dict(),
            "target": self.target,
            "summary": self.summary.to_dict(),
            "results": [result.to_dict() for result in self.results],
        }
        if self.portfolio_id:
            payload["portfolioId"] = self.portfolio_id
        if self.weights is not None:
            payload["weights"] = self.weights.to_dict()
        if self.run_id:
            payload["runId"] = self.run_id
        return payload


__all__ = [
    "Company",
    "CompanyScreeningResult",
    "CriteriaSet",
    "Holding",
    "Portfolio",
    "ScreeningOutput",
    "ScreeningResult",
    "ScreeningSummary",
    "WeightSummary",
]
