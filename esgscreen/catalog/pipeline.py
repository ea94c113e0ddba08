from __future__ import annotations

"""Load pipeline: schema, parameter catalog, criteria sets and CSV imports."""

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import List

from esgscreen.schema import DatabaseSchema

from .criteria import CriteriaStore, load_criteria_config
from .imports import ImportSummary, import_directory
from .parameters import ParameterStore, parameter_catalog

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LoadSummary:
    parameters: int
    criteria_sets: int
    imports: List[ImportSummary] = field(default_factory=list)

    @property
    def values_written(self) -> int:
        return sum(summary.parameter_values_written for summary in self.imports)


def run_pipeline(
    *,
    sqlite_path: Path,
    criteria_config: Path,
    import_dir: Path,
    run_date: date,
) -> LoadSummary:
    """Prepare the database and load reference data for screening."""

    DatabaseSchema(sqlite_path).ensure()
    parameters = ParameterStore(sqlite_path)
    synced = parameters.sync(parameter_catalog())

    criteria_sets = 0
    if criteria_config.exists():
        config = load_criteria_config(criteria_config, parameters.data_types())
        if config.parameters:
            synced += parameters.sync(config.parameters)
        criteria_sets = CriteriaStore(sqlite_path).sync(config.criteria_sets)
    else:
        logger.warning(
            "Criteria configuration %s not found; stored criteria sets are unchanged.",
            criteria_config,
        )

    imports = import_directory(import_dir, sqlite_path=sqlite_path, as_of=run_date)
    return LoadSummary(parameters=synced, criteria_sets=criteria_sets, imports=imports)


__all__ = ["LoadSummary", "run_pipeline"]
