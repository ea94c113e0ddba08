"""Seed a demo ESG universe for local QA and demos."""
from __future__ import annotations

from datetime import date
from typing import Dict, List, Tuple

from esgscreen.catalog.companies import CompanyRepository, company_key
from esgscreen.catalog.criteria import CriteriaStore, load_criteria_config
from esgscreen.catalog.parameters import ParameterStore, ParameterValue, parameter_catalog
from esgscreen.catalog.portfolios import PortfolioStore
from esgscreen.schema import DatabaseSchema
from esgscreen.screening.models import Company, Holding, Portfolio
from esgscreen.screening.pipeline import screen_portfolio
from esgscreen.settings import Settings

AS_OF = date(2024, 1, 1)
DEMO_CLIENT = "demo-investment-fund"

# name, ticker, sector, region
DEMO_COMPANIES: List[Tuple[str, str, str, str]] = [
    ("GreenTech Corp", "GTC", "Technology", "North America"),
    ("OilCo Industries", "OCI", "Energy", "North America"),
    ("CleanEnergy Inc", "CEI", "Utilities", "Europe"),
    ("FastFashion Ltd", "FFL", "Consumer", "Asia"),
    ("SustainableGoods Co", "SGC", "Consumer", "Europe"),
]

# carbon_emissions, board_diversity_pct, has_environmental_policy,
# controversy_level, renewable_energy_pct
DEMO_VALUES: Dict[str, Tuple[float, float, bool, str, float]] = {
    "GTC": (50, 40, True, "none", 80),
    "OCI": (5000, 15, False, "high", 5),
    "CEI": (20, 50, True, "none", 95),
    "FFL": (200, 25, True, "medium", 30),
    "SGC": (30, 45, True, "low", 70),
}

PARAMETER_ORDER = (
    "carbon_emissions",
    "board_diversity_pct",
    "has_environmental_policy",
    "controversy_level",
    "renewable_energy_pct",
)


def _companies() -> List[Company]:
    return [
        Company(
            company_id=company_key(name),
            name=name,
            ticker=ticker,
            sector=sector,
            region=region,
        )
        for name, ticker, sector, region in DEMO_COMPANIES
    ]


def _values(companies: List[Company]) -> List[ParameterValue]:
    values: List[ParameterValue] = []
    for company in companies:
        for parameter, value in zip(PARAMETER_ORDER, DEMO_VALUES[company.ticker or ""]):
            values.append(
                ParameterValue(
                    company_id=company.company_id,
                    parameter=parameter,
                    as_of_date=AS_OF,
                    value=value,
                    source="demo-seed",
                )
            )
    return values


def seed_demo_data() -> None:
    settings = Settings.load()
    settings.ensure_directories()
    DatabaseSchema(settings.sqlite_path).ensure()

    parameters = ParameterStore(settings.sqlite_path)
    parameters.sync(parameter_catalog())

    companies = _companies()
    CompanyRepository(settings.sqlite_path).sync(companies)
    written = parameters.record_values(_values(companies))

    portfolio = Portfolio(
        portfolio_id="main-portfolio",
        name="Main Portfolio",
        client_id=DEMO_CLIENT,
        holdings=[Holding(company=company, weight=20.0) for company in companies],
    )
    PortfolioStore(settings.sqlite_path).save(portfolio)

    config = load_criteria_config(settings.criteria_config, parameters.data_types())
    CriteriaStore(settings.sqlite_path).sync(config.criteria_sets)

    result = screen_portfolio(
        portfolio.portfolio_id,
        config.criteria_sets[0].criteria_set_id,
        sqlite_path=settings.sqlite_path,
        weight_tolerance=settings.weight_tolerance,
    )

    print("Demo data seeded:")
    print(f"  Companies: {len(companies)}")
    print(f"  Parameter values: {written}")
    print(f"  Criteria sets: {len(config.criteria_sets)}")
    print(
        f"  Screening {result.id}: {result.summary.passed}/{result.summary.total_holdings} "
        f"passed ({result.summary.pass_rate}%)"
    )


if __name__ == "__main__":
    seed_demo_data()
