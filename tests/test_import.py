from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from esgscreen.catalog.imports import (
    CSVImportError,
    CSVImporter,
    import_directory,
    infer_data_type,
    normalize_column,
    parse_cell,
)
from esgscreen.catalog.parameters import ParameterStore
from esgscreen.rules.values import DataType
from esgscreen.screening.repository import ScreeningRepository

IMPORT_DATE = date(2024, 4, 1)


def _csv(tmp_path: Path, text: str, name: str = "holdings.csv") -> Path:
    path = tmp_path / name
    path.write_text(text.lstrip(), encoding="utf-8")
    return path


def test_parse_cell_recognises_booleans_and_numbers() -> None:
    assert parse_cell(" Yes ") is True
    assert parse_cell("false") is False
    assert parse_cell("42") == 42
    assert parse_cell("12.5") == 12.5
    assert parse_cell("medium") == "medium"


def test_infer_data_type() -> None:
    assert infer_data_type([True, False]) is DataType.BOOLEAN
    assert infer_data_type([1, 2.5]) is DataType.NUMBER
    assert infer_data_type([1, "n/a"]) is DataType.STRING
    assert infer_data_type([]) is DataType.STRING


def test_normalize_column() -> None:
    assert normalize_column(" Water Usage (m3) ") == "water_usage_m3"
    assert normalize_column("Company Name") == "company_name"


def test_import_matches_existing_companies_by_ticker(seeded_db: Path, tmp_path: Path) -> None:
    path = _csv(
        tmp_path,
        """
Company Name,Ticker,Weight,carbon_emissions,water_usage
Oil Company Renamed,OCI,60,450,1200
New Co,NEW,40,20,300
""",
    )

    summary = CSVImporter(seeded_db).import_file(
        path, as_of=IMPORT_DATE, portfolio_name="Client C", client_id="client-c"
    )

    assert summary.successful_rows == 2
    assert summary.companies_created == 1
    assert summary.parameters_created == 1
    assert summary.parameter_values_written == 4
    assert summary.portfolio_id == "client-c"
    repository = ScreeningRepository(seeded_db)
    values = repository.current_parameter_values("oilco-industries", IMPORT_DATE)
    assert values["carbon_emissions"].value == "450"
    assert values["water_usage"].data_type is DataType.NUMBER
    portfolio = repository.portfolio("client-c")
    assert portfolio is not None
    assert portfolio.client_id == "client-c"
    assert [(holding.company.company_id, holding.weight) for holding in portfolio.holdings] == [
        ("oilco-industries", 60.0),
        ("new-co", 40.0),
    ]


def test_import_reports_row_errors_and_weight_warnings(sqlite_path: Path, tmp_path: Path) -> None:
    path = _csv(
        tmp_path,
        """
company_name,weight,has_environmental_policy
Alpha,abc,yes
,10,no
Beta,150,no
""",
    )

    summary = CSVImporter(sqlite_path).import_file(path, as_of=IMPORT_DATE)

    assert summary.total_rows == 3
    assert summary.failed_rows == 2
    assert summary.errors == [
        'Row 2: Invalid weight value: "abc" - must be a number',
        "Row 3: Company name is required",
    ]
    assert summary.warnings == ["Row 4: Weight 150 is outside typical range (0-100)"]
    assert ParameterStore(sqlite_path).data_types()["has_environmental_policy"] is DataType.BOOLEAN


def test_import_without_weights_creates_no_portfolio(sqlite_path: Path, tmp_path: Path) -> None:
    path = _csv(tmp_path, "company_name,sector\nAlpha,Energy\n")

    summary = CSVImporter(sqlite_path).import_file(path, as_of=IMPORT_DATE)

    assert summary.portfolio_id is None
    assert summary.parameter_values_written == 0
    assert ScreeningRepository(sqlite_path).companies_by_sector("energy")[0].name == "Alpha"


@pytest.mark.parametrize(
    "text",
    ["ticker,weight\nOCI,10\n", "company_name,weight\n"],
)
def test_unusable_files_raise(sqlite_path: Path, tmp_path: Path, text: str) -> None:
    with pytest.raises(CSVImportError):
        CSVImporter(sqlite_path).import_file(_csv(tmp_path, text), as_of=IMPORT_DATE)


def test_missing_file_raises(sqlite_path: Path, tmp_path: Path) -> None:
    with pytest.raises(CSVImportError):
        CSVImporter(sqlite_path).import_file(tmp_path / "nope.csv", as_of=IMPORT_DATE)


def test_import_directory_processes_each_file(sqlite_path: Path, tmp_path: Path) -> None:
    directory = tmp_path / "imports"
    directory.mkdir()
    _csv(directory, "company_name,weight\nAlpha,100\n", "b.csv")
    _csv(directory, "company_name,carbon_emissions\nBeta,10\n", "a.csv")

    summaries = import_directory(directory, sqlite_path=sqlite_path, as_of=IMPORT_DATE)

    assert [summary.source for summary in summaries] == ["a.csv", "b.csv"]
    assert summaries[1].portfolio_id == "b"
    assert import_directory(tmp_path / "missing", sqlite_path=sqlite_path, as_of=IMPORT_DATE) == []
