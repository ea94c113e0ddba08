from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import pytest

from esgscreen.catalog.companies import CompanyRepository
from esgscreen.catalog.criteria import CriteriaStore
from esgscreen.catalog.parameters import ParameterStore, ParameterValue, parameter_catalog
from esgscreen.catalog.portfolios import PortfolioStore
from esgscreen.core.stage import StageContext
from esgscreen.rules.evaluator import ParameterSnapshot, Rule, Severity
from esgscreen.rules.expression import ComparisonCondition, Operator
from esgscreen.rules.values import DataType
from esgscreen.schema import DatabaseSchema
from esgscreen.screening.models import Company, CriteriaSet, Holding, Portfolio
from esgscreen.settings import Settings

REPO_ROOT = Path(__file__).resolve().parents[1]
AS_OF = date(2024, 1, 1)

COMPANIES = [
    Company("greentech-corp", "GreenTech Corp", "GTC", "Technology", "North America"),
    Company("oilco-industries", "OilCo Industries", "OCI", "Energy", "North America"),
    Company("cleanenergy-inc", "CleanEnergy Inc", "CEI", "Utilities", "Europe"),
]

VALUES = {
    "greentech-corp": (50, 40, True, "none"),
    "oilco-industries": (5000, 15, False, "high"),
    "cleanenergy-inc": (20, 50, True, "none"),
}


class FakeLookup:
    """In-memory parameter lookup keyed by company id."""

    def __init__(self, snapshots: Mapping[str, Mapping[str, ParameterSnapshot]]) -> None:
        self.snapshots = snapshots
        self.calls: List[tuple[str, Optional[date]]] = []

    def current_parameter_values(
        self, company_id: str, as_of: Optional[date] = None
    ) -> Mapping[str, ParameterSnapshot]:
        self.calls.append((company_id, as_of))
        return self.snapshots.get(company_id, {})


def snapshot(name: str, raw: str, data_type: DataType) -> ParameterSnapshot:
    return ParameterSnapshot(name=name, value=raw, data_type=data_type, as_of_date=AS_OF)


def rule(
    rule_id: str,
    parameter: str,
    operator: Operator,
    value,
    severity: Severity = Severity.EXCLUDE,
    failure_message: Optional[str] = None,
) -> Rule:
    return Rule(
        rule_id=rule_id,
        name=rule_id.replace("-", " ").title(),
        expression=ComparisonCondition(parameter=parameter, operator=operator, value=value),
        severity=severity,
        failure_message=failure_message,
    )


def standard_rules() -> List[Rule]:
    return [
        rule("carbon", "carbon_emissions", Operator.LT, 500),
        rule("diversity", "board_diversity_pct", Operator.GE, 30),
        rule("policy", "has_environmental_policy", Operator.EQ, True, Severity.WARN),
        rule("controversy", "controversy_level", Operator.NE, "high"),
    ]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    settings = Settings(
        data_dir=tmp_path / "data",
        output_dir=tmp_path / "artifacts",
        sqlite_path=tmp_path / "esgscreen.sqlite",
        criteria_config=REPO_ROOT / "config" / "criteria_sets.yaml",
        weight_tolerance=0.01,
        log_level="INFO",
    )
    settings.ensure_directories()
    return settings


@pytest.fixture
def stage_context(settings: Settings, tmp_path: Path) -> StageContext:
    """Create a temporary stage context for tests."""

    return StageContext(
        settings=settings,
        run_id="test-run",
        timestamp=datetime(2024, 6, 1, 12, 0, 0),
        workspace=tmp_path,
    )


@pytest.fixture
def sqlite_path(settings: Settings) -> Path:
    DatabaseSchema(settings.sqlite_path).ensure()
    return settings.sqlite_path


@pytest.fixture
def seeded_db(sqlite_path: Path) -> Path:
    """Three companies, one client portfolio and a global criteria set."""

    parameters = ParameterStore(sqlite_path)
    parameters.sync(parameter_catalog())
    CompanyRepository(sqlite_path).sync(COMPANIES)
    names = ("carbon_emissions", "board_diversity_pct", "has_environmental_policy", "controversy_level")
    values: List[ParameterValue] = []
    for company_id, row in VALUES.items():
        for name, value in zip(names, row):
            values.append(ParameterValue(company_id, name, AS_OF, value, "test"))
    parameters.record_values(values)

    PortfolioStore(sqlite_path).save(
        Portfolio(
            portfolio_id="client-a-core",
            name="Client A Core",
            client_id="client-a",
            holdings=[Holding(company, 40.0) for company in COMPANIES],
        )
    )
    store = CriteriaStore(sqlite_path)
    store.save(
        CriteriaSet(
            criteria_set_id="standard",
            name="Standard ESG Screen",
            version="1.0",
            effective_date=AS_OF,
            rules=standard_rules(),
        )
    )
    store.save(
        CriteriaSet(
            criteria_set_id="client-b-only",
            name="Client B Screen",
            version="1.0",
            effective_date=AS_OF,
            client_id="client-b",
            rules=[rule("b-carbon", "carbon_emissions", Operator.LT, 100)],
        )
    )
    return sqlite_path


@pytest.fixture
def snapshots() -> Dict[str, Dict[str, ParameterSnapshot]]:
    return {
        "oilco-industries": {
            "carbon_emissions": snapshot("carbon_emissions", "5000", DataType.NUMBER),
            "board_diversity_pct": snapshot("board_diversity_pct", "15", DataType.NUMBER),
            "has_environmental_policy": snapshot(
                "has_environmental_policy", "false", DataType.BOOLEAN
            ),
            "controversy_level": snapshot("controversy_level", '"high"', DataType.STRING),
        },
        "greentech-corp": {
            "carbon_emissions": snapshot("carbon_emissions", "50", DataType.NUMBER),
            "board_diversity_pct": snapshot("board_diversity_pct", "40", DataType.NUMBER),
            "has_environmental_policy": snapshot(
                "has_environmental_policy", "true", DataType.BOOLEAN
            ),
            "controversy_level": snapshot("controversy_level", '"none"', DataType.STRING),
        },
    }
