from __future__ import annotations

"""Pre-screening check that companies have data for every rule parameter."""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from esgscreen.rules.evaluator import Rule, lookup_snapshot

from .engine import ParameterLookup
from .models import Company


@dataclass(slots=True)
class CompanyIssue:
    company_id: str
    company_name: str
    missing_parameters: List[str]


@dataclass(slots=True)
class CoverageReport:
    """Which rule parameters are unavailable, per company and overall."""

    is_valid: bool
    total_companies: int
    companies_with_complete_data: int
    companies_with_missing_data: int
    required_parameters: List[str]
    missing_parameters: List[str]
    company_issues: List[CompanyIssue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "totalCompanies": self.total_companies,
            "companiesWithCompleteData": self.companies_with_complete_data,
            "companiesWithMissingData": self.companies_with_missing_data,
            "requiredParameters": list(self.required_parameters),
            "missingParameters": list(self.missing_parameters),
            "companyIssues": [
                {
                    "companyId": issue.company_id,
                    "companyName": issue.company_name,
                    "missingParameters": list(issue.missing_parameters),
                }
                for issue in self.company_issues
            ],
        }


def required_parameters(rules: Sequence[Rule]) -> List[str]:
    """Distinct rule parameters in first-use order."""

    seen: Dict[str, str] = {}
    for rule in rules:
        name = rule.expression.parameter
        seen.setdefault(name.upper(), name)
    return list(seen.values())


def validate_parameter_coverage(
    rules: Sequence[Rule],
    companies: Sequence[Company],
    lookup: ParameterLookup,
    as_of: Optional[date] = None,
) -> CoverageReport:
    required = required_parameters(rules)
    issues: List[CompanyIssue] = []
    covered: set[str] = set()

    for company in companies:
        snapshot = lookup.current_parameter_values(company.company_id, as_of)
        missing: List[str] = []
        for parameter in required:
            if lookup_snapshot(parameter, snapshot) is None:
                missing.append(parameter)
            else:
                covered.add(parameter)
        if missing:
            issues.append(
                CompanyIssue(
                    company_id=company.company_id,
                    company_name=company.name,
                    missing_parameters=missing,
                )
            )

    return CoverageReport(
        is_valid=not issues,
        total_companies=len(companies),
        companies_with_complete_data=len(companies) - len(issues),
        companies_with_missing_data=len(issues),
        required_parameters=required,
        missing_parameters=[name for name in required if name not in covered],
        company_issues=issues,
    )


__all__ = [
    "CompanyIssue",
    "CoverageReport",
    "required_parameters",
    "validate_parameter_coverage",
]
