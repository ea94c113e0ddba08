from __future__ import annotations

"""CSV import of companies, parameter values and portfolio holdings."""

import csv
import logging
import re
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

from esgscreen.rules.values import DataType
from esgscreen.screening.models import Company, Holding, Portfolio

from .companies import CompanyRepository, company_key
from .parameters import ParameterDefinition, ParameterStore, ParameterValue
from .portfolios import PortfolioStore

logger = logging.getLogger(__name__)

Cell = Union[bool, int, float, str]

RESERVED_COLUMNS = {"company_name", "companyname", "ticker", "sector", "region", "weight"}
_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_INTEGER = re.compile(r"^[+-]?\d+$")


class CSVImportError(RuntimeError):
    """Raised when an import file cannot be processed at all."""


@dataclass(slots=True)
class ImportSummary:
    """Counters and messages produced by one CSV import."""

    source: str
    total_rows: int = 0
    successful_rows: int = 0
    failed_rows: int = 0
    companies_created: int = 0
    companies_updated: int = 0
    parameters_created: int = 0
    parameter_values_written: int = 0
    holdings_created: int = 0
    portfolio_id: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass(slots=True)
class _Row:
    number: int
    company_name: str
    ticker: Optional[str]
    sector: Optional[str]
    region: Optional[str]
    weight: Optional[float]
    values: Dict[str, Cell]


def normalize_column(name: str) -> str:
    """Lowercase a header and reduce it to ``[a-z0-9_]``."""

    collapsed = re.sub(r"\s+", "_", name.strip().lower())
    return re.sub(r"[^a-z0-9_]", "", collapsed)


def parse_cell(text: str) -> Cell:
    """Interpret a CSV cell as a boolean, a number or text."""

    value = text.strip()
    lowered = value.lower()
    if lowered in {"true", "yes"}:
        return True
    if lowered in {"false", "no"}:
        return False
    if _INTEGER.match(value):
        return int(value)
    if _NUMBER.match(value):
        return float(value)
    return value


def infer_data_type(values: Iterable[Cell]) -> DataType:
    """Boolean when every value is boolean, number when every value is numeric."""

    present = [value for value in values if value != ""]
    if not present:
        return DataType.STRING
    if all(isinstance(value, bool) for value in present):
        return DataType.BOOLEAN
    if all(isinstance(value, (int, float)) and not isinstance(value, bool) for value in present):
        return DataType.NUMBER
    return DataType.STRING


def _optional(row: Mapping[str, str], key: str) -> Optional[str]:
    value = (row.get(key) or "").strip()
    return value or None


class CSVImporter:
    """Import a CSV file of companies and ESG parameter values."""

    def __init__(self, sqlite_path: Path, *, source: str = "csv-import") -> None:
        self.sqlite_path = sqlite_path
        self.source = source

    def import_file(
        self,
        path: Path,
        *,
        as_of: date,
        portfolio_name: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> ImportSummary:
        if not path.exists():
            raise CSVImportError(f"Import file not found at {path}")
        with path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.DictReader(handle)
            headers = reader.fieldnames or []
            records = [
                record
                for record in reader
                if any(isinstance(value, str) and value.strip() for value in record.values())
            ]

        columns = {header: normalize_column(header) for header in headers if header}
        if "company_name" not in columns.values() and "companyname" not in columns.values():
            raise CSVImportError(f"{path.name} has no company_name column")
        if not records:
            raise CSVImportError(f"{path.name} is empty or has no data rows")

        summary = ImportSummary(source=path.name, total_rows=len(records))
        rows = self._validate(records, columns, summary)
        if not rows:
            summary.errors.append("No valid rows to import")
            return summary

        parameters = self._ensure_parameters(rows, summary)
        companies = self._ensure_companies(rows, summary)
        values = [
            ParameterValue(
                company_id=companies[row.number].company_id,
                parameter=name,
                as_of_date=as_of,
                value=value,
                source=self.source,
            )
            for row in rows
            for name, value in row.values.items()
            if name in parameters
        ]
        summary.parameter_values_written = ParameterStore(self.sqlite_path).record_values(values)

        has_weights = "weight" in columns.values()
        if has_weights or portfolio_name:
            portfolio = self._portfolio(
                portfolio_name or path.stem, client_id, rows, companies
            )
            PortfolioStore(self.sqlite_path).save(portfolio)
            summary.portfolio_id = portfolio.portfolio_id
            summary.holdings_created = len(portfolio.holdings)

        logger.info(
            "Imported %s: %d row(s) ok, %d failed, %d value(s) written",
            path.name,
            summary.successful_rows,
            summary.failed_rows,
            summary.parameter_values_written,
        )
        for warning in summary.warnings:
            logger.warning("%s: %s", path.name, warning)
        return summary

    # ------------------------------------------------------------------
    # Row handling
    # ------------------------------------------------------------------
    def _validate(
        self,
        records: List[Dict[str, str]],
        columns: Mapping[str, str],
        summary: ImportSummary,
    ) -> List[_Row]:
        rows: List[_Row] = []
        for index, record in enumerate(records):
            number = index + 2
            normalized = {
                columns[key]: (value or "")
                for key, value in record.items()
                if key in columns and isinstance(value, str)
            }
            name = _optional(normalized, "company_name") or _optional(normalized, "companyname")
            if not name:
                summary.failed_rows += 1
                summary.errors.append(f"Row {number}: Company name is required")
                continue

            weight: Optional[float] = None
            weight_text = _optional(normalized, "weight")
            if weight_text is not None:
                parsed = parse_cell(weight_text)
                if isinstance(parsed, bool) or not isinstance(parsed, (int, float)):
                    summary.failed_rows += 1
                    summary.errors.append(
                        f'Row {number}: Invalid weight value: "{weight_text}" - must be a number'
                    )
                    continue
                weight = float(parsed)
                if weight < 0 or weight > 100:
                    summary.warnings.append(
                        f"Row {number}: Weight {weight:g} is outside typical range (0-100)"
                    )

            values = {
                key: parse_cell(value)
                for key, value in normalized.items()
                if key and key not in RESERVED_COLUMNS and value.strip()
            }
            rows.append(
                _Row(
                    number=number,
                    company_name=name,
                    ticker=_optional(normalized, "ticker"),
                    sector=_optional(normalized, "sector"),
                    region=_optional(normalized, "region"),
                    weight=weight,
                    values=values,
                )
            )
            summary.successful_rows += 1
        return rows

    def _ensure_parameters(self, rows: List[_Row], summary: ImportSummary) -> Dict[str, DataType]:
        store = ParameterStore(self.sqlite_path)
        known = store.data_types()
        names: List[str] = []
        for row in rows:
            for name in row.values:
                if name not in names:
                    names.append(name)

        created: List[ParameterDefinition] = []
        for name in names:
            if name in known:
                continue
            data_type = infer_data_type(row.values[name] for row in rows if name in row.values)
            created.append(
                ParameterDefinition(
                    name=name,
                    data_type=data_type,
                    description=f"Created by import of {summary.source}",
                )
            )
            known[name] = data_type
        if created:
            store.sync(created)
            summary.parameters_created = len(created)
        return {name: known[name] for name in names}

    def _ensure_companies(self, rows: List[_Row], summary: ImportSummary) -> Dict[int, Company]:
        with sqlite3.connect(self.sqlite_path) as connection:
            connection.row_factory = sqlite3.Row
            existing = connection.execute(
                "SELECT company_id, name, ticker, sector, region FROM companies"
            ).fetchall()
        by_ticker = {row["ticker"].lower(): row for row in existing if row["ticker"]}
        by_name = {row["name"].lower(): row for row in existing}

        resolved: Dict[int, Company] = {}
        pending: Dict[str, Company] = {}
        for row in rows:
            match = None
            if row.ticker:
                match = by_ticker.get(row.ticker.lower())
            if match is None:
                match = by_name.get(row.company_name.lower())
            if match is None:
                company_id = company_key(row.company_name)
                company = pending.get(company_id) or Company(
                    company_id=company_id,
                    name=row.company_name,
                    ticker=row.ticker,
                    sector=row.sector,
                    region=row.region,
                )
                if company_id not in pending:
                    summary.companies_created += 1
            else:
                company = Company(
                    company_id=match["company_id"],
                    name=match["name"],
                    ticker=match["ticker"] or row.ticker,
                    sector=match["sector"] or row.sector,
                    region=match["region"] or row.region,
                )
                if (
                    (row.ticker and not match["ticker"])
                    or (row.sector and not match["sector"])
                    or (row.region and not match["region"])
                ):
                    summary.companies_updated += 1
            pending[company.company_id] = company
            resolved[row.number] = company

        CompanyRepository(self.sqlite_path).sync(pending.values())
        return resolved

    def _portfolio(
        self,
        name: str,
        client_id: Optional[str],
        rows: List[_Row],
        companies: Mapping[int, Company],
    ) -> Portfolio:
        holdings: Dict[str, Holding] = {}
        for row in rows:
            company = companies[row.number]
            holdings[company.company_id] = Holding(company=company, weight=row.weight or 0.0)
        return Portfolio(
            portfolio_id=company_key(name),
            name=name,
            client_id=client_id,
            holdings=list(holdings.values()),
        )


def import_directory(
    directory: Path, *, sqlite_path: Path, as_of: date
) -> List[ImportSummary]:
    """Import every CSV file in *directory*, one portfolio per file with weights."""

    if not directory.exists():
        logger.info("Import directory %s does not exist; nothing to import.", directory)
        return []
    importer = CSVImporter(sqlite_path)
    summaries: List[ImportSummary] = []
    for path in sorted(directory.glob("*.csv")):
        summaries.append(importer.import_file(path, as_of=as_of))
    return summaries


__all__ = [
    "CSVImportError",
    "CSVImporter",
    "ImportSummary",
    "RESERVED_COLUMNS",
    "import_directory",
    "infer_data_type",
    "normalize_column",
    "parse_cell",
]
