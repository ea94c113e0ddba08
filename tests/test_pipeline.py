from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path

import pytest

from esgscreen.catalog.criteria import CriteriaStore
from esgscreen.catalog.parameters import ParameterStore, ParameterValue
from esgscreen.core.stage import StageContext
from esgscreen.rules.expression import Operator
from esgscreen.screening import pipeline
from esgscreen.screening.models import CriteriaSet
from esgscreen.screening.pipeline import (
    AccessDeniedError,
    NotFoundError,
    ScreeningError,
    delete_screening_result,
    get_screening_result,
    list_screening_results,
    run_pipeline,
    screen_companies,
    screen_company,
    screen_portfolio,
    screen_region,
    screen_sector,
    screen_universe,
    validate_coverage,
)
from esgscreen.screening.storage import ScreeningStore

from conftest import AS_OF, rule


def test_screen_portfolio_persists_result(seeded_db: Path) -> None:
    result = screen_portfolio("client-a-core", "standard", sqlite_path=seeded_db, run_id="r1")

    assert result.summary.to_dict() == {
        "totalHoldings": 3,
        "passed": 2,
        "failed": 1,
        "passRate": 67,
    }
    assert result.portfolio_id == "client-a-core"
    assert result.target["type"] == "portfolio"
    assert result.weights is not None
    assert result.weights.excluded_weight == 40.0
    assert result.weights.warning is not None
    stored = get_screening_result(result.id, sqlite_path=seeded_db)
    assert [entry.passed for entry in stored.results] == [True, False, True]


def test_screen_portfolio_rejects_other_clients_criteria(seeded_db: Path) -> None:
    with pytest.raises(AccessDeniedError) as excinfo:
        screen_portfolio("client-a-core", "client-b-only", sqlite_path=seeded_db)

    assert "not accessible to the portfolio's client" in str(excinfo.value)
    assert list_screening_results(sqlite_path=seeded_db) == []


def test_screen_portfolio_unknown_targets(seeded_db: Path) -> None:
    with pytest.raises(NotFoundError):
        screen_portfolio("missing", "standard", sqlite_path=seeded_db)
    with pytest.raises(NotFoundError):
        screen_portfolio("client-a-core", "missing", sqlite_path=seeded_db)


def test_ad_hoc_screens_are_not_persisted_by_default(seeded_db: Path) -> None:
    company = screen_company("oilco-industries", "standard", sqlite_path=seeded_db)
    sector = screen_sector("Energy", "standard", sqlite_path=seeded_db)
    region = screen_region("Europe", "standard", sqlite_path=seeded_db)
    universe = screen_universe("standard", sqlite_path=seeded_db)

    assert company.summary.passed == 0
    assert [entry.company.company_id for entry in sector.results] == ["oilco-industries"]
    assert [entry.company.company_id for entry in region.results] == ["cleanenergy-inc"]
    assert universe.summary.total_holdings == 3
    assert company.weights is None
    assert list_screening_results(sqlite_path=seeded_db) == []


def test_ad_hoc_screen_can_be_saved(seeded_db: Path) -> None:
    result = screen_companies(
        ["greentech-corp", "unknown", "oilco-industries"],
        "standard",
        sqlite_path=seeded_db,
        persist=True,
    )

    assert result.target == {"type": "companies", "ids": ["greentech-corp", "oilco-industries"]}
    headers = list_screening_results(sqlite_path=seeded_db)
    assert [header.id for header in headers] == [result.id]
    assert headers[0].portfolio_id is None


def test_empty_targets_raise_not_found(seeded_db: Path) -> None:
    with pytest.raises(NotFoundError):
        screen_sector("Mining", "standard", sqlite_path=seeded_db)
    with pytest.raises(NotFoundError):
        screen_companies(["nobody"], "standard", sqlite_path=seeded_db)
    with pytest.raises(NotFoundError):
        screen_company("nobody", "standard", sqlite_path=seeded_db)


def test_cutoff_before_any_data_fails_everything(seeded_db: Path) -> None:
    result = screen_company(
        "greentech-corp", "standard", sqlite_path=seeded_db, as_of=date(2023, 12, 31)
    )

    assert result.as_of_date == date(2023, 12, 31)
    assert result.summary.passed == 0
    assert all(
        entry.failure_reason.startswith("No data available")
        for entry in result.results[0].rule_results
    )


def test_screen_without_date_uses_latest_values(seeded_db: Path) -> None:
    ParameterStore(seeded_db).record_values(
        [ParameterValue("greentech-corp", "carbon_emissions", date(2999, 1, 1), 900, "plan")]
    )

    latest = screen_company("greentech-corp", "standard", sqlite_path=seeded_db)
    current = screen_company(
        "greentech-corp", "standard", sqlite_path=seeded_db, as_of=date(2024, 6, 1)
    )

    assert latest.as_of_date is None
    assert latest.results[0].rule_results[0].actual_value == 900.0
    assert latest.results[0].passed is False
    assert current.results[0].rule_results[0].actual_value == 50.0


def test_storage_failure_becomes_screening_error(
    seeded_db: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def explode(self, result) -> str:
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(ScreeningStore, "persist", explode)

    with pytest.raises(ScreeningError) as excinfo:
        screen_portfolio("client-a-core", "standard", sqlite_path=seeded_db)
    assert isinstance(excinfo.value.__cause__, sqlite3.OperationalError)


def test_get_and_delete_screening_result(seeded_db: Path) -> None:
    result = screen_portfolio("client-a-core", "standard", sqlite_path=seeded_db)

    delete_screening_result(result.id, sqlite_path=seeded_db)

    with pytest.raises(NotFoundError):
        get_screening_result(result.id, sqlite_path=seeded_db)
    with pytest.raises(NotFoundError):
        delete_screening_result(result.id, sqlite_path=seeded_db)


def test_validate_coverage_for_portfolio(seeded_db: Path) -> None:
    CriteriaStore(seeded_db).save(
        CriteriaSet(
            criteria_set_id="renewables",
            name="Renewables",
            version="1.0",
            effective_date=AS_OF,
            rules=[rule("renewable", "renewable_energy_pct", Operator.GE, 50)],
        )
    )

    report = validate_coverage("renewables", sqlite_path=seeded_db, portfolio_id="client-a-core")

    assert report.is_valid is False
    assert report.companies_with_missing_data == 3
    assert report.missing_parameters == ["renewable_energy_pct"]
    assert validate_coverage("standard", sqlite_path=seeded_db).is_valid is True


def test_run_pipeline_uses_latest_effective_version(seeded_db: Path) -> None:
    store = CriteriaStore(seeded_db)
    store.save(
        CriteriaSet(
            criteria_set_id="standard-2",
            name="Standard ESG Screen",
            version="2.0",
            effective_date=date(2024, 6, 1),
            rules=[rule("carbon-2", "carbon_emissions", Operator.LT, 10000)],
        )
    )

    before = run_pipeline(sqlite_path=seeded_db, run_id="r-may", run_date=date(2024, 5, 1))
    after = run_pipeline(sqlite_path=seeded_db, run_id="r-june", run_date=date(2024, 6, 1))

    [may] = [get_screening_result(rid, sqlite_path=seeded_db) for rid in before.result_ids]
    [june] = [get_screening_result(rid, sqlite_path=seeded_db) for rid in after.result_ids]
    assert may.criteria_set.criteria_set_id == "standard"
    assert june.criteria_set.criteria_set_id == "standard-2"
    assert june.summary.passed == 3
    assert before.portfolios_screened == 1
    assert before.companies_failed == 1


def test_run_pipeline_without_portfolios(sqlite_path: Path) -> None:
    summary = run_pipeline(sqlite_path=sqlite_path, run_id="r", run_date=AS_OF)

    assert summary.screenings == 0
    assert summary.result_ids == []


def test_screen_stage_uses_run_date(
    seeded_db: Path, stage_context: StageContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    from esgscreen import screening

    captured = {}

    def fake_run_pipeline(**kwargs):
        captured.update(kwargs)
        return pipeline.PipelineSummary(1, 1, 0, kwargs["run_date"])

    monkeypatch.setattr(screening, "run_pipeline", fake_run_pipeline)
    screening.run(stage_context)

    assert captured["run_date"] == date(2024, 6, 1)
    assert captured["run_id"] == "test-run"
    assert captured["sqlite_path"] == seeded_db
