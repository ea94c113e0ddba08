from __future__ import annotations

"""Shape engine output into persisted screening results."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from esgscreen.core.utils import new_identifier

from .models import (
    CriteriaSet,
    Holding,
    Portfolio,
    ScreeningOutput,
    ScreeningResult,
    WeightSummary,
)

logger = logging.getLogger(__name__)

FULL_WEIGHT = 100.0


@dataclass(slots=True)
class WeightNormalization:
    """Holdings rescaled to sum to 100 and a description of the change."""

    portfolio: Portfolio
    message: str
    original_total: float


def rescale_weights(holdings: Sequence[Holding]) -> List[Holding]:
    """Return copies of *holdings* whose weights sum to 100, ratios preserved.

    All-zero weights are spread evenly. An empty sequence is rejected.
    """

    if not holdings:
        raise ValueError("Portfolio has no holdings to normalize")
    total = sum(holding.weight or 0.0 for holding in holdings)
    if total == 0:
        equal = FULL_WEIGHT / len(holdings)
        return [Holding(company=holding.company, weight=equal) for holding in holdings]
    return [
        Holding(company=holding.company, weight=(holding.weight or 0.0) / total * FULL_WEIGHT)
        for holding in holdings
    ]


def normalize_portfolio(portfolio: Portfolio) -> WeightNormalization:
    original_total = sum(holding.weight or 0.0 for holding in portfolio.holdings)
    rescaled = rescale_weights(portfolio.holdings)
    normalized = Portfolio(
        portfolio_id=portfolio.portfolio_id,
        name=portfolio.name,
        client_id=portfolio.client_id,
        holdings=rescaled,
    )
    return WeightNormalization(
        portfolio=normalized,
        message=f"Weights normalized from {original_total:.2f}% to 100%",
        original_total=original_total,
    )


def weight_warning(total: float, tolerance: float) -> Optional[str]:
    if abs(total - FULL_WEIGHT) <= tolerance:
        return None
    return (
        f"Holding weights sum to {total:.2f}% instead of 100%; "
        "run normalize-weights to rescale them proportionally."
    )


class ResultAssembler:
    """Build :class:`ScreeningResult` objects from engine output."""

    def __init__(self, *, weight_tolerance: float = 0.01) -> None:
        self.weight_tolerance = weight_tolerance

    def assemble(
        self,
        output: ScreeningOutput,
        criteria_set: CriteriaSet,
        *,
        target: Mapping[str, Any],
        portfolio: Optional[Portfolio] = None,
        screened_at: Optional[datetime] = None,
        run_id: Optional[str] = None,
        result_id: Optional[str] = None,
    ) -> ScreeningResult:
        weights = None
        if portfolio is not None:
            weights = self.weight_summary(portfolio, output)
            if weights.warning:
                logger.warning("Portfolio %s: %s", portfolio.name, weights.warning)
        return ScreeningResult(
            id=result_id or new_identifier(),
            screened_at=screened_at or datetime.now(timezone.utc),
            as_of_date=output.as_of_date,
            criteria_set=criteria_set,
            summary=output.summary,
            results=list(output.results),
            target=dict(target),
            portfolio_id=portfolio.portfolio_id if portfolio else None,
            weights=weights,
            run_id=run_id,
        )

    def weight_summary(self, portfolio: Portfolio, output: ScreeningOutput) -> WeightSummary:
        verdicts: Dict[str, bool] = {
            result.company.company_id: result.passed for result in output.results
        }
        total = 0.0
        passed = 0.0
        excluded = 0.0
        for holding in portfolio.holdings:
            weight = holding.weight or 0.0
            total += weight
            verdict = verdicts.get(holding.company.company_id)
            if verdict is None:
                continue
            if verdict:
                passed += weight
            else:
                excluded += weight
        return WeightSummary(
            total_weight=total,
            passed_weight=passed,
            excluded_weight=excluded,
            warning=weight_warning(total, self.weight_tolerance) if portfolio.holdings else None,
        )


__all__ = [
    "FULL_WEIGHT",
    "ResultAssembler",
    "WeightNormalization",
    "normalize_portfolio",
    "rescale_weights",
    "weight_warning",
]
