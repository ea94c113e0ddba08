from __future__ import annotations

from datetime import date
from typing import Dict

import pytest

from esgscreen.rules.evaluator import ParameterSnapshot, Severity
from esgscreen.rules.expression import Operator
from esgscreen.screening.engine import ScreeningEngine, company_passes, pass_rate
from esgscreen.screening.models import Company

from conftest import FakeLookup, rule, standard_rules

OILCO = Company("oilco-industries", "OilCo Industries", "OCI", "Energy")
GREENTECH = Company("greentech-corp", "GreenTech Corp", "GTC", "Technology")
UNKNOWN = Company("mystery-co", "Mystery Co")


def test_oilco_fails_every_rule(snapshots: Dict[str, Dict[str, ParameterSnapshot]]) -> None:
    engine = ScreeningEngine(FakeLookup(snapshots))
    output = engine.evaluate_criteria_set(standard_rules(), [OILCO])

    [company] = output.results
    assert company.passed is False
    assert [result.passed for result in company.rule_results] == [False, False, False, False]
    assert company.rule_results[0].actual_value == 5000.0
    assert company.rule_results[0].threshold == "< 500"
    assert output.summary.to_dict() == {
        "totalHoldings": 1,
        "passed": 0,
        "failed": 1,
        "passRate": 0,
    }


def test_results_follow_input_order(snapshots: Dict[str, Dict[str, ParameterSnapshot]]) -> None:
    engine = ScreeningEngine(FakeLookup(snapshots))
    output = engine.evaluate_criteria_set(standard_rules(), [GREENTECH, OILCO])

    assert [result.company.company_id for result in output.results] == [
        "greentech-corp",
        "oilco-industries",
    ]
    assert [result.passed for result in output.results] == [True, False]
    assert output.summary.pass_rate == 50


def test_evaluation_is_deterministic(snapshots: Dict[str, Dict[str, ParameterSnapshot]]) -> None:
    engine = ScreeningEngine(FakeLookup(snapshots))
    first = engine.evaluate_criteria_set(standard_rules(), [GREENTECH, OILCO, UNKNOWN])
    second = engine.evaluate_criteria_set(standard_rules(), [GREENTECH, OILCO, UNKNOWN])

    assert [result.to_dict() for result in first.results] == [
        result.to_dict() for result in second.results
    ]
    assert first.summary == second.summary


def test_company_without_data_fails_closed(
    snapshots: Dict[str, Dict[str, ParameterSnapshot]]
) -> None:
    output = ScreeningEngine(FakeLookup(snapshots)).evaluate_criteria_set(
        standard_rules(), [UNKNOWN]
    )

    [company] = output.results
    assert company.passed is False
    assert all(
        result.failure_reason.startswith("No data available") for result in company.rule_results
    )


def test_empty_rule_set_passes_vacuously(
    snapshots: Dict[str, Dict[str, ParameterSnapshot]]
) -> None:
    output = ScreeningEngine(FakeLookup(snapshots)).evaluate_criteria_set([], [OILCO, UNKNOWN])

    assert all(result.passed for result in output.results)
    assert all(result.rule_results == [] for result in output.results)
    assert output.summary.pass_rate == 100


def test_only_exclude_failures_reject(snapshots: Dict[str, Dict[str, ParameterSnapshot]]) -> None:
    rules = [
        rule("policy", "has_environmental_policy", Operator.EQ, True, Severity.WARN),
        rule("carbon", "carbon_emissions", Operator.LT, 100, Severity.INFO),
    ]
    output = ScreeningEngine(FakeLookup(snapshots)).evaluate_criteria_set(rules, [OILCO])

    [company] = output.results
    assert company.passed is True
    assert [result.passed for result in company.rule_results] == [False, False]
    assert company_passes(company.rule_results) is True


def test_empty_company_list_yields_zero_summary(
    snapshots: Dict[str, Dict[str, ParameterSnapshot]]
) -> None:
    output = ScreeningEngine(FakeLookup(snapshots)).evaluate_criteria_set(standard_rules(), [])

    assert output.results == []
    assert output.summary.to_dict() == {
        "totalHoldings": 0,
        "passed": 0,
        "failed": 0,
        "passRate": 0,
    }


def test_snapshot_read_once_per_company_with_cutoff(
    snapshots: Dict[str, Dict[str, ParameterSnapshot]]
) -> None:
    lookup = FakeLookup(snapshots)
    cutoff = date(2024, 3, 31)
    output = ScreeningEngine(lookup).evaluate_criteria_set(
        standard_rules(), [OILCO, OILCO], as_of=cutoff
    )

    assert lookup.calls == [("oilco-industries", cutoff)]
    assert output.as_of_date == cutoff
    assert len(output.results) == 2


@pytest.mark.parametrize(
    "passed, total, expected",
    [(0, 0, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13), (5, 5, 100)],
)
def test_pass_rate_rounds_half_up(passed: int, total: int, expected: int) -> None:
    assert pass_rate(passed, total) == expected


def test_removing_exclude_rules_flips_verdict(
    snapshots: Dict[str, Dict[str, ParameterSnapshot]]
) -> None:
    engine = ScreeningEngine(FakeLookup(snapshots))
    rules = standard_rules()[:3]

    full = engine.evaluate_criteria_set(rules, [OILCO]).results[0]
    warn_only = engine.evaluate_criteria_set(rules[2:], [OILCO]).results[0]

    assert [result.passed for result in full.rule_results] == [False, False, False]
    assert full.passed is False
    assert warn_only.passed is True
