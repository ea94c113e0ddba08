"""ESG screening export stage."""
from __future__ import annotations

import logging

from esgscreen.core import register_stage
from esgscreen.core.stage import StageContext

from .generators import ExportGenerator

logger = logging.getLogger(__name__)


@register_stage("export", "Write CSV/Excel extracts of the run's screening results.")
def run(context: StageContext) -> None:
    """Produce CSV/Excel files for the screening results of this run."""

    generator = ExportGenerator(context.settings.sqlite_path, context.settings.output_dir)
    summary = generator.generate(context.run_id)
    if summary.result_rows == 0:
        logger.warning(
            "No screening results available for export in run %s; skipping file generation.",
            context.run_id,
        )
        return
    logger.info(
        "Exported %d screening result(s), %d holding row(s) and %d rule row(s) for run %s.",
        summary.result_rows,
        summary.holding_rows,
        summary.rule_rows,
        context.run_id,
    )
    for artifact in summary.files:
        logger.info("Export artifact written to %s", artifact)
