"""SQLite schema management for the screening database."""
from __future__ import annotations

import sqlite3
from pathlib import Path


class DatabaseSchema:
    """Ensure the SQLite database contains every screening table."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def ensure(self) -> None:
        with sqlite3.connect(self.path) as connection:
            connection.execute("PRAGMA foreign_keys = ON")
            connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS companies (
                    company_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    ticker TEXT,
                    sector TEXT,
                    region TEXT,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS parameters (
                    name TEXT PRIMARY KEY,
                    data_type TEXT NOT NULL CHECK (data_type IN ('number', 'boolean', 'string')),
                    unit TEXT,
                    description TEXT,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS parameter_values (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    company_id TEXT NOT NULL REFERENCES companies(company_id) ON DELETE CASCADE,
                    parameter_name TEXT NOT NULL REFERENCES parameters(name),
                    as_of_date TEXT NOT NULL,
                    value TEXT NOT NULL,
                    source TEXT,
                    recorded_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE(company_id, parameter_name, as_of_date)
                );

                CREATE TABLE IF NOT EXISTS portfolios (
                    portfolio_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    client_id TEXT,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS holdings (
                    portfolio_id TEXT NOT NULL REFERENCES portfolios(portfolio_id) ON DELETE CASCADE,
                    company_id TEXT NOT NULL REFERENCES companies(company_id),
                    position INTEGER NOT NULL DEFAULT 0,
                    weight REAL NOT NULL DEFAULT 0,
                    PRIMARY KEY (portfolio_id, company_id)
                );

                CREATE TABLE IF NOT EXISTS criteria_sets (
                    criteria_set_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    version TEXT NOT NULL,
                    effective_date TEXT NOT NULL,
                    client_id TEXT,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS rules (
                    rule_id TEXT PRIMARY KEY,
                    criteria_set_id TEXT NOT NULL REFERENCES criteria_sets(criteria_set_id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT,
                    expression TEXT NOT NULL,
                    failure_message TEXT,
                    severity TEXT NOT NULL CHECK (severity IN ('exclude', 'warn', 'info'))
                );

                CREATE TABLE IF NOT EXISTS screening_results (
                    id TEXT PRIMARY KEY,
                    run_id TEXT,
                    screened_at TEXT NOT NULL,
                    as_of_date TEXT,
                    criteria_set_id TEXT NOT NULL,
                    portfolio_id TEXT,
                    criteria_set TEXT NOT NULL,
                    target TEXT NOT NULL,
                    summary TEXT NOT NULL,
                    weights TEXT,
                    pipeline_version TEXT
                );

                CREATE TABLE IF NOT EXISTS screening_company_results (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    result_id TEXT NOT NULL REFERENCES screening_results(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    company_id TEXT NOT NULL,
                    company_name TEXT NOT NULL,
                    passed INTEGER NOT NULL,
                    rule_results TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_parameter_values_lookup
                    ON parameter_values (company_id, parameter_name, as_of_date);

                CREATE INDEX IF NOT EXISTS idx_rules_criteria_set
                    ON rules (criteria_set_id, position);

                CREATE INDEX IF NOT EXISTS idx_screening_results_run
                    ON screening_results (run_id);

                CREATE INDEX IF NOT EXISTS idx_screening_company_results_result
                    ON screening_company_results (result_id, position);
                """
            )


__all__ = ["DatabaseSchema"]
