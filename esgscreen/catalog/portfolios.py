from __future__ import annotations

"""Portfolio persistence and weight maintenance."""

import logging
import sqlite3
from pathlib import Path

from esgscreen.screening.assembler import WeightNormalization, normalize_portfolio
from esgscreen.screening.models import Portfolio
from esgscreen.screening.pipeline import NotFoundError
from esgscreen.screening.repository import ScreeningRepository

logger = logging.getLogger(__name__)


class PortfolioStore:
    """Write portfolios and their holdings to SQLite."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def save(self, portfolio: Portfolio) -> None:
        """Upsert *portfolio* and replace its holdings in one transaction."""

        with sqlite3.connect(self.path) as connection:
            connection.execute("PRAGMA foreign_keys = ON")
            connection.execute(
                """
                INSERT INTO portfolios (portfolio_id, name, client_id)
                VALUES (?, ?, ?)
                ON CONFLICT(portfolio_id) DO UPDATE SET
                    name=excluded.name,
                    client_id=excluded.client_id,
                    updated_at=CURRENT_TIMESTAMP
                """,
                (portfolio.portfolio_id, portfolio.name, portfolio.client_id),
            )
            self._replace_holdings(connection, portfolio)
        logger.info(
            "Stored portfolio %s with %d holding(s)", portfolio.name, len(portfolio.holdings)
        )

    def _replace_holdings(self, connection: sqlite3.Connection, portfolio: Portfolio) -> None:
        connection.execute(
            "DELETE FROM holdings WHERE portfolio_id = ?", (portfolio.portfolio_id,)
        )
        for position, holding in enumerate(portfolio.holdings):
            connection.execute(
                """
                INSERT INTO holdings (portfolio_id, company_id, position, weight)
                VALUES (?, ?, ?, ?)
                """,
                (
                    portfolio.portfolio_id,
                    holding.company.company_id,
                    position,
                    holding.weight or 0.0,
                ),
            )

    def normalize_weights(self, portfolio_id: str) -> WeightNormalization:
        """Rescale holding weights so they sum to 100 and store them."""

        portfolio = ScreeningRepository(self.path).portfolio(portfolio_id)
        if portfolio is None:
            raise NotFoundError(f"Portfolio not found: {portfolio_id}")
        normalization = normalize_portfolio(portfolio)
        with sqlite3.connect(self.path) as connection:
            connection.execute("PRAGMA foreign_keys = ON")
            for holding in normalization.portfolio.holdings:
                connection.execute(
                    "UPDATE holdings SET weight = ? WHERE portfolio_id = ? AND company_id = ?",
                    (holding.weight, portfolio_id, holding.company.company_id),
                )
            connection.execute(
                "UPDATE portfolios SET updated_at = CURRENT_TIMESTAMP WHERE portfolio_id = ?",
                (portfolio_id,),
            )
        logger.info("Portfolio %s: %s", portfolio.name, normalization.message)
        return normalization


__all__ = ["PortfolioStore"]
