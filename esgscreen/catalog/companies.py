from __future__ import annotations

"""Company registry synchronization."""

import logging
import re
import sqlite3
from pathlib import Path
from typing import Iterable

from esgscreen.screening.models import Company

logger = logging.getLogger(__name__)


def company_key(name: str) -> str:
    """Stable identifier derived from a company name."""

    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "company"


class CompanyRepository:
    """Persist the company registry into SQLite."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def sync(self, companies: Iterable[Company]) -> int:
        entries = list(companies)
        if not entries:
            logger.warning("No companies provided; registry will remain unchanged.")
            return 0
        with sqlite3.connect(self.path) as connection:
            connection.execute("PRAGMA foreign_keys = ON")
            for company in entries:
                connection.execute(
                    """
                    INSERT INTO companies (company_id, name, ticker, sector, region)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(company_id) DO UPDATE SET
                        name=excluded.name,
                        ticker=COALESCE(excluded.ticker, companies.ticker),
                        sector=COALESCE(excluded.sector, companies.sector),
                        region=COALESCE(excluded.region, companies.region),
                        updated_at=CURRENT_TIMESTAMP
                    """,
                    (
                        company.company_id,
                        company.name,
                        company.ticker,
                        company.sector,
                        company.region,
                    ),
                )
        logger.info("Synchronized %d company(ies) into the registry", len(entries))
        return len(entries)


__all__ = ["CompanyRepository", "company_key"]
