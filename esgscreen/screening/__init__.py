"""ESG screening stage."""
from __future__ import annotations

import logging

from esgscreen.core import register_stage
from esgscreen.core.stage import StageContext

from .pipeline import run_pipeline

logger = logging.getLogger(__name__)


@register_stage("screen", "Screen every portfolio against the criteria sets in force.")
def run(context: StageContext) -> None:
    """Execute the screening pipeline for the run date."""

    logger.info(
        "Starting screening with database %s as of %s",
        context.settings.sqlite_path,
        context.run_date.isoformat(),
    )
    summary = run_pipeline(
        sqlite_path=context.settings.sqlite_path,
        run_id=context.run_id,
        run_date=context.run_date,
        weight_tolerance=context.settings.weight_tolerance,
    )
    logger.info(
        "Screening summary: %d portfolio(s), %d screening(s), %d failing holding(s)",
        summary.portfolios_screened,
        summary.screenings,
        summary.companies_failed,
    )
