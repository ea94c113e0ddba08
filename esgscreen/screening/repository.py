from __future__ import annotations

"""Data access helpers for the screening engine."""

import json
import logging
import sqlite3
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from esgscreen.rules.evaluator import ParameterSnapshot, Rule, Severity
from esgscreen.rules.expression import ComparisonCondition
from esgscreen.rules.values import DataType
from esgscreen.schema import DatabaseSchema

from .models import Company, CriteriaSet, Holding, Portfolio

logger = logging.getLogger(__name__)

_COMPANY_COLUMNS = "company_id, name, ticker, sector, region"


def _company(row: sqlite3.Row) -> Company:
    return Company(
        company_id=row["company_id"],
        name=row["name"],
        ticker=row["ticker"],
        sector=row["sector"],
        region=row["region"],
    )


class ScreeningRepository:
    """Read companies, parameter values, portfolios and criteria sets."""

    def __init__(self, path: Path) -> None:
        self.path = path
        DatabaseSchema(path).ensure()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self.path)
        connection.row_factory = sqlite3.Row
        return connection

    # ------------------------------------------------------------------
    # Parameter values
    # ------------------------------------------------------------------
    def current_parameter_values(
        self, company_id: str, as_of: Optional[date] = None
    ) -> Dict[str, ParameterSnapshot]:
        """Latest value per parameter dated on or before *as_of*.

        Without a cutoff the latest value available is returned.
        """

        cutoff = as_of.isoformat() if as_of else None
        with self._connect() as connection:
            rows = connection.execute(
                """
                SELECT pv.parameter_name,
                       pv.value,
                       pv.as_of_date,
                       pv.source,
                       p.data_type,
                       p.unit
                FROM parameter_values pv
                JOIN parameters p ON p.name = pv.parameter_name
                WHERE pv.company_id = ?
                  AND (? IS NULL OR pv.as_of_date <= ?)
                ORDER BY pv.parameter_name, pv.as_of_date DESC
                """,
                (company_id, cutoff, cutoff),
            ).fetchall()

        snapshot: Dict[str, ParameterSnapshot] = {}
        for row in rows:
            name = row["parameter_name"]
            if name in snapshot:
                continue
            snapshot[name] = ParameterSnapshot(
                name=name,
                value=row["value"],
                data_type=DataType.parse(row["data_type"]),
                as_of_date=date.fromisoformat(row["as_of_date"]),
                unit=row["unit"],
                source=row["source"],
            )
        return snapshot

    def parameter_catalog(self) -> Dict[str, DataType]:
        with self._connect() as connection:
            rows = connection.execute("SELECT name, data_type FROM parameters").fetchall()
        return {row["name"]: DataType.parse(row["data_type"]) for row in rows}

    # ------------------------------------------------------------------
    # Companies
    # ------------------------------------------------------------------
    def companies(self) -> List[Company]:
        with self._connect() as connection:
            rows = connection.execute(
                f"SELECT {_COMPANY_COLUMNS} FROM companies ORDER BY name, company_id"
            ).fetchall()
        return [_company(row) for row in rows]

    def company(self, company_id: str) -> Optional[Company]:
        with self._connect() as connection:
            row = connection.execute(
                f"SELECT {_COMPANY_COLUMNS} FROM companies WHERE company_id = ?",
                (company_id,),
            ).fetchone()
        return _company(row) if row else None

    def companies_by_id(self, company_ids: Iterable[str]) -> List[Company]:
        """Companies in the order requested; unknown identifiers are skipped."""

        found: List[Company] = []
        for company_id in dict.fromkeys(company_ids):
            company = self.company(company_id)
            if company is None:
                logger.warning("Company %s not found; skipping", company_id)
                continue
            found.append(company)
        return found

    def companies_by_sector(self, sector: str) -> List[Company]:
        with self._connect() as connection:
            rows = connection.execute(
                f"SELECT {_COMPANY_COLUMNS} FROM companies "
                "WHERE lower(sector) = lower(?) ORDER BY name, company_id",
                (sector,),
            ).fetchall()
        return [_company(row) for row in rows]

    def companies_by_region(self, region: str) -> List[Company]:
        with self._connect() as connection:
            rows = connection.execute(
                f"SELECT {_COMPANY_COLUMNS} FROM companies "
                "WHERE lower(region) = lower(?) ORDER BY name, company_id",
                (region,),
            ).fetchall()
        return [_company(row) for row in rows]

    # ------------------------------------------------------------------
    # Portfolios
    # ------------------------------------------------------------------
    def portfolio(self, portfolio_id: str) -> Optional[Portfolio]:
        with self._connect() as connection:
            header = connection.execute(
                "SELECT portfolio_id, name, client_id FROM portfolios WHERE portfolio_id = ?",
                (portfolio_id,),
            ).fetchone()
            if header is None:
                return None
            rows = connection.execute(
                """
                SELECT c.company_id, c.name, c.ticker, c.sector, c.region, h.weight
                FROM holdings h
                JOIN companies c ON c.company_id = h.company_id
                WHERE h.portfolio_id = ?
                ORDER BY h.position, c.name
                """,
                (portfolio_id,),
            ).fetchall()
        return Portfolio(
            portfolio_id=header["portfolio_id"],
            name=header["name"],
            client_id=header["client_id"],
            holdings=[Holding(company=_company(row), weight=row["weight"]) for row in rows],
        )

    def portfolio_ids(self) -> List[str]:
        with self._connect() as connection:
            rows = connection.execute(
                "SELECT portfolio_id FROM portfolios ORDER BY name, portfolio_id"
            ).fetchall()
        return [row["portfolio_id"] for row in rows]

    def portfolios(self) -> List[Portfolio]:
        portfolios: List[Portfolio] = []
        for portfolio_id in self.portfolio_ids():
            portfolio = self.portfolio(portfolio_id)
            if portfolio is not None:
                portfolios.append(portfolio)
        return portfolios

    # ------------------------------------------------------------------
    # Criteria sets
    # ------------------------------------------------------------------
    def criteria_set(self, criteria_set_id: str) -> Optional[CriteriaSet]:
        with self._connect() as connection:
            header = connection.execute(
                """
                SELECT criteria_set_id, name, version, effective_date, client_id
                FROM criteria_sets WHERE criteria_set_id = ?
                """,
                (criteria_set_id,),
            ).fetchone()
            if header is None:
                return None
            rows = connection.execute(
                """
                SELECT rule_id, name, description, expression, failure_message, severity
                FROM rules WHERE criteria_set_id = ?
                ORDER BY position
                """,
                (criteria_set_id,),
            ).fetchall()
        rules = [
            Rule(
                rule_id=row["rule_id"],
                name=row["name"],
                expression=ComparisonCondition.from_dict(json.loads(row["expression"])),
                severity=Severity.parse(row["severity"]),
                description=row["description"],
                failure_message=row["failure_message"],
            )
            for row in rows
        ]
        return CriteriaSet(
            criteria_set_id=header["criteria_set_id"],
            name=header["name"],
            version=header["version"],
            effective_date=date.fromisoformat(header["effective_date"]),
            client_id=header["client_id"],
            rules=rules,
        )

    def visible_criteria_sets(self, client_id: Optional[str] = None) -> List[CriteriaSet]:
        """Global criteria sets plus those owned by *client_id*.

        Ordered by name, then most recent effective date first.
        """

        with self._connect() as connection:
            rows = connection.execute(
                """
                SELECT criteria_set_id FROM criteria_sets
                WHERE client_id IS NULL OR client_id = ?
                ORDER BY name, effective_date DESC, version DESC
                """,
                (client_id,),
            ).fetchall()
        sets: List[CriteriaSet] = []
        for row in rows:
            criteria_set = self.criteria_set(row["criteria_set_id"])
            if criteria_set is not None:
                sets.append(criteria_set)
        return sets

    def effective_criteria_sets(
        self, client_id: Optional[str], on_date: date
    ) -> List[CriteriaSet]:
        """The latest effective version of each visible criteria set on *on_date*."""

        chosen: Dict[str, CriteriaSet] = {}
        for criteria_set in self.visible_criteria_sets(client_id):
            if criteria_set.effective_date > on_date:
                continue
            chosen.setdefault(criteria_set.name, criteria_set)
        return list(chosen.values())


__all__ = ["ScreeningRepository"]
