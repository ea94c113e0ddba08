from __future__ import annotations

from datetime import date
from typing import List

import pytest

from esgscreen.core.registry import StageRegistry
from esgscreen.core.runner import StageRunner
from esgscreen.core.stage import StageContext


def _dummy_stage(context: StageContext) -> None:  # pragma: no cover - simple stub
    del context


def test_registry_prevents_duplicate_registration() -> None:
    registry = StageRegistry()
    registry.register("demo", _dummy_stage)
    with pytest.raises(ValueError):
        registry.register("demo", _dummy_stage)


def test_registry_lists_pipeline_stages_first() -> None:
    registry = StageRegistry()
    registry.register("extra", _dummy_stage)
    registry.register("export", _dummy_stage)
    registry.register("load", _dummy_stage)
    registry.register("screen", _dummy_stage)

    assert registry.names() == ["load", "screen", "export", "extra"]


def test_stage_runner_resolve_filters_duplicates() -> None:
    registry = StageRegistry()
    registry.register("screen", _dummy_stage)
    registry.register("load", _dummy_stage)
    runner = StageRunner(registry)

    assert runner.resolve(["screen", "load", "screen"]) == ["screen", "load"]
    assert runner.resolve(None) == ["load", "screen"]

    with pytest.raises(ValueError):
        runner.resolve(["missing"])


def test_stage_runner_stops_on_failure(stage_context: StageContext) -> None:
    calls: List[str] = []

    def record(context: StageContext) -> None:
        calls.append(context.run_date.isoformat())

    def explode(context: StageContext) -> None:
        raise RuntimeError("boom")

    registry = StageRegistry()
    registry.register("load", record)
    registry.register("screen", explode)
    registry.register("export", record)
    runner = StageRunner(registry)

    with pytest.raises(RuntimeError):
        runner.run(["load", "screen", "export"], stage_context)
    assert calls == ["2024-06-01"]


def test_stage_runner_reports_outcomes(stage_context: StageContext) -> None:
    registry = StageRegistry()
    registry.register("load", _dummy_stage)
    outcomes = StageRunner(registry).run(["load"], stage_context)

    assert [outcome.name for outcome in outcomes] == ["load"]
    assert outcomes[0].seconds >= 0


def test_as_of_overrides_run_date(stage_context: StageContext) -> None:
    assert stage_context.run_date == date(2024, 6, 1)

    stage_context.as_of = date(2024, 1, 31)

    assert stage_context.run_date == date(2024, 1, 31)
