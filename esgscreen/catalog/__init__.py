"""Reference data load stage."""
from __future__ import annotations

import logging

from esgscreen.core import register_stage
from esgscreen.core.stage import StageContext

from .pipeline import run_pipeline

logger = logging.getLogger(__name__)


@register_stage("load", "Create the schema and load parameters, criteria sets and CSV imports.")
def run(context: StageContext) -> None:
    """Execute the load pipeline."""

    logger.info(
        "Starting load with database %s, criteria %s and imports from %s",
        context.settings.sqlite_path,
        context.settings.criteria_config,
        context.settings.import_dir,
    )
    summary = run_pipeline(
        sqlite_path=context.settings.sqlite_path,
        criteria_config=context.settings.criteria_config,
        import_dir=context.settings.import_dir,
        run_date=context.run_date,
    )
    logger.info(
        "Load summary: %d parameter definition(s), %d criteria set(s), %d import file(s), %d value(s)",
        summary.parameters,
        summary.criteria_sets,
        len(summary.imports),
        summary.values_written,
    )
