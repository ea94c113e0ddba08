from __future__ import annotations

"""Screening orchestration: resolve targets, evaluate, assemble and persist."""

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .assembler import ResultAssembler
from .coverage import CoverageReport, validate_parameter_coverage
from .engine import ScreeningEngine
from .models import Company, CriteriaSet, Portfolio, ScreeningResult
from .repository import ScreeningRepository
from .storage import ResultHeader, ScreeningStore

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """Raised when a portfolio, company or criteria set does not exist."""


class AccessDeniedError(PermissionError):
    """Raised when a criteria set is not visible to a portfolio's client."""


class ScreeningError(RuntimeError):
    """Raised when a screening cannot be completed; nothing is persisted."""


@dataclass(slots=True)
class PipelineSummary:
    """Outcome of the screening stage for one run."""

    portfolios_screened: int
    screenings: int
    companies_failed: int
    as_of_date: Optional[date]
    result_ids: List[str] = field(default_factory=list)


def _criteria_set(repository: ScreeningRepository, criteria_set_id: str) -> CriteriaSet:
    criteria_set = repository.criteria_set(criteria_set_id)
    if criteria_set is None:
        raise NotFoundError(f"Criteria set not found: {criteria_set_id}")
    return criteria_set


def _run_screening(
    repository: ScreeningRepository,
    criteria_set: CriteriaSet,
    companies: Sequence[Company],
    *,
    sqlite_path: Path,
    target: Mapping[str, Any],
    label: str,
    as_of: Optional[date],
    portfolio: Optional[Portfolio] = None,
    weight_tolerance: float = 0.01,
    run_id: Optional[str] = None,
    persist: bool = True,
) -> ScreeningResult:
    try:
        output = ScreeningEngine(repository).evaluate_criteria_set(
            criteria_set.rules, companies, as_of
        )
        result = ResultAssembler(weight_tolerance=weight_tolerance).assemble(
            output,
            criteria_set,
            target=target,
            portfolio=portfolio,
            run_id=run_id,
        )
        if persist:
            ScreeningStore(sqlite_path).persist(result)
    except (sqlite3.Error, ValueError, TypeError, KeyError) as exc:
        logger.exception("Screening of %s against '%s' failed", label, criteria_set.name)
        raise ScreeningError(f"Failed to screen {label}") from exc

    logger.info(
        "Screened %s against '%s' v%s as of %s: %d/%d passed (%d%%)",
        label,
        criteria_set.name,
        criteria_set.version,
        as_of.isoformat() if as_of else "latest values",
        result.summary.passed,
        result.summary.total_holdings,
        result.summary.pass_rate,
    )
    return result


def screen_portfolio(
    portfolio_id: str,
    criteria_set_id: str,
    *,
    sqlite_path: Path,
    as_of: Optional[date] = None,
    weight_tolerance: float = 0.01,
    run_id: Optional[str] = None,
) -> ScreeningResult:
    """Screen every holding of a portfolio and persist the result."""

    repository = ScreeningRepository(sqlite_path)
    portfolio = repository.portfolio(portfolio_id)
    if portfolio is None:
        raise NotFoundError(f"Portfolio not found: {portfolio_id}")
    criteria_set = _criteria_set(repository, criteria_set_id)
    if not criteria_set.visible_to(portfolio.client_id):
        raise AccessDeniedError(
            f"Criteria set '{criteria_set.name}' is not accessible to the portfolio's client. "
            "Only global criteria sets or criteria sets owned by the client can be used."
        )
    return _run_screening(
        repository,
        criteria_set,
        portfolio.companies,
        sqlite_path=sqlite_path,
        target={"type": "portfolio", "id": portfolio.portfolio_id, "name": portfolio.name},
        label=f"portfolio {portfolio.name}",
        as_of=as_of,
        portfolio=portfolio,
        weight_tolerance=weight_tolerance,
        run_id=run_id,
    )


def screen_company(
    company_id: str,
    criteria_set_id: str,
    *,
    sqlite_path: Path,
    as_of: Optional[date] = None,
    persist: bool = False,
) -> ScreeningResult:
    repository = ScreeningRepository(sqlite_path)
    company = repository.company(company_id)
    if company is None:
        raise NotFoundError(f"Company not found: {company_id}")
    criteria_set = _criteria_set(repository, criteria_set_id)
    return _run_screening(
        repository,
        criteria_set,
        [company],
        sqlite_path=sqlite_path,
        target={"type": "company", "id": company.company_id, "name": company.name},
        label=f"company {company.name}",
        as_of=as_of,
        persist=persist,
    )


def screen_companies(
    company_ids: Sequence[str],
    criteria_set_id: str,
    *,
    sqlite_path: Path,
    as_of: Optional[date] = None,
    persist: bool = False,
) -> ScreeningResult:
    repository = ScreeningRepository(sqlite_path)
    criteria_set = _criteria_set(repository, criteria_set_id)
    companies = repository.companies_by_id(company_ids)
    if not companies:
        raise NotFoundError("No companies found")
    return _run_screening(
        repository,
        criteria_set,
        companies,
        sqlite_path=sqlite_path,
        target={"type": "companies", "ids": [company.company_id for company in companies]},
        label=f"{len(companies)} company(ies)",
        as_of=as_of,
        persist=persist,
    )


def screen_sector(
    sector: str,
    criteria_set_id: str,
    *,
    sqlite_path: Path,
    as_of: Optional[date] = None,
    persist: bool = False,
) -> ScreeningResult:
    repository = ScreeningRepository(sqlite_path)
    criteria_set = _criteria_set(repository, criteria_set_id)
    companies = repository.companies_by_sector(sector)
    if not companies:
        raise NotFoundError(f"No companies found in sector: {sector}")
    return _run_screening(
        repository,
        criteria_set,
        companies,
        sqlite_path=sqlite_path,
        target={"type": "sector", "sector": sector},
        label=f"sector {sector}",
        as_of=as_of,
        persist=persist,
    )


def screen_region(
    region: str,
    criteria_set_id: str,
    *,
    sqlite_path: Path,
    as_of: Optional[date] = None,
    persist: bool = False,
) -> ScreeningResult:
    repository = ScreeningRepository(sqlite_path)
    criteria_set = _criteria_set(repository, criteria_set_id)
    companies = repository.companies_by_region(region)
    if not companies:
        raise NotFoundError(f"No companies found in region: {region}")
    return _run_screening(
        repository,
        criteria_set,
        companies,
        sqlite_path=sqlite_path,
        target={"type": "region", "region": region},
        label=f"region {region}",
        as_of=as_of,
        persist=persist,
    )


def screen_universe(
    criteria_set_id: str,
    *,
    sqlite_path: Path,
    as_of: Optional[date] = None,
    persist: bool = False,
) -> ScreeningResult:
    """Screen every known company."""

    repository = ScreeningRepository(sqlite_path)
    criteria_set = _criteria_set(repository, criteria_set_id)
    companies = repository.companies()
    if not companies:
        raise NotFoundError("No companies found")
    return _run_screening(
        repository,
        criteria_set,
        companies,
        sqlite_path=sqlite_path,
        target={"type": "universe"},
        label="all companies",
        as_of=as_of,
        persist=persist,
    )


def validate_coverage(
    criteria_set_id: str,
    *,
    sqlite_path: Path,
    portfolio_id: Optional[str] = None,
    company_ids: Optional[Sequence[str]] = None,
    as_of: Optional[date] = None,
) -> CoverageReport:
    """Report missing parameter data before screening a portfolio or companies."""

    repository = ScreeningRepository(sqlite_path)
    criteria_set = _criteria_set(repository, criteria_set_id)
    if portfolio_id is not None:
        portfolio = repository.portfolio(portfolio_id)
        if portfolio is None:
            raise NotFoundError(f"Portfolio not found: {portfolio_id}")
        companies = portfolio.companies
    elif company_ids:
        companies = repository.companies_by_id(company_ids)
    else:
        companies = repository.companies()
    return validate_parameter_coverage(
        criteria_set.rules, companies, repository, as_of
    )


def list_screening_results(
    *,
    sqlite_path: Path,
    portfolio_id: Optional[str] = None,
    criteria_set_id: Optional[str] = None,
) -> List[ResultHeader]:
    return ScreeningStore(sqlite_path).list_results(
        portfolio_id=portfolio_id, criteria_set_id=criteria_set_id
    )


def get_screening_result(result_id: str, *, sqlite_path: Path) -> ScreeningResult:
    result = ScreeningStore(sqlite_path).get(result_id)
    if result is None:
        raise NotFoundError(f"Screening result not found: {result_id}")
    return result


def delete_screening_result(result_id: str, *, sqlite_path: Path) -> None:
    """Screening results are immutable; deletion is the only change allowed."""

    if not ScreeningStore(sqlite_path).delete(result_id):
        raise NotFoundError(f"Screening result not found: {result_id}")


def run_pipeline(
    *,
    sqlite_path: Path,
    run_id: str,
    run_date: date,
    weight_tolerance: float = 0.01,
) -> PipelineSummary:
    """Screen every portfolio against each criteria set in force on *run_date*."""

    repository = ScreeningRepository(sqlite_path)
    portfolios = repository.portfolios()
    if not portfolios:
        logger.warning("No portfolios available; skipping screening stage.")
        return PipelineSummary(0, 0, 0, run_date)

    result_ids: List[str] = []
    failed = 0
    screened: Dict[str, int] = {}
    for portfolio in portfolios:
        criteria_sets = repository.effective_criteria_sets(portfolio.client_id, run_date)
        if not criteria_sets:
            logger.warning(
                "No criteria set in force for portfolio %s on %s",
                portfolio.name,
                run_date.isoformat(),
            )
            continue
        for criteria_set in criteria_sets:
            result = screen_portfolio(
                portfolio.portfolio_id,
                criteria_set.criteria_set_id,
                sqlite_path=sqlite_path,
                as_of=run_date,
                weight_tolerance=weight_tolerance,
                run_id=run_id,
            )
            result_ids.append(result.id)
            failed += result.summary.failed
            screened[portfolio.portfolio_id] = screened.get(portfolio.portfolio_id, 0) + 1

    return PipelineSummary(
        portfolios_screened=len(screened),
        screenings=len(result_ids),
        companies_failed=failed,
        as_of_date=run_date,
        result_ids=result_ids,
    )


__all__ = [
    "AccessDeniedError",
    "NotFoundError",
    "PipelineSummary",
    "ScreeningError",
    "delete_screening_result",
    "get_screening_result",
    "list_screening_results",
    "run_pipeline",
    "screen_companies",
    "screen_company",
    "screen_portfolio",
    "screen_region",
    "screen_sector",
    "screen_universe",
    "validate_coverage",
]
