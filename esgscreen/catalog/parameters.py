from __future__ import annotations

"""ESG parameter definitions and dated parameter values."""

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from esgscreen.rules.values import DataType, Scalar

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ParameterDefinition:
    """A named, typed ESG metric."""

    name: str
    data_type: DataType
    unit: str | None = None
    description: str | None = None


@dataclass(slots=True)
class ParameterValue:
    """A dated fact for one company and parameter."""

    company_id: str
    parameter: str
    as_of_date: date
    value: Scalar
    source: str | None = None


def parameter_catalog() -> List[ParameterDefinition]:
    """Return the standard ESG parameter catalog."""

    return [
        ParameterDefinition(
            name="carbon_emissions",
            data_type=DataType.NUMBER,
            unit="tons CO2/year",
            description="Annual carbon emissions",
        ),
        ParameterDefinition(
            name="board_diversity_pct",
            data_type=DataType.NUMBER,
            unit="%",
            description="Percentage of board members from underrepresented groups",
        ),
        ParameterDefinition(
            name="has_environmental_policy",
            data_type=DataType.BOOLEAN,
            description="Company has formal environmental policy",
        ),
        ParameterDefinition(
            name="controversy_level",
            data_type=DataType.STRING,
            description="Level of ESG controversies (none, low, medium, high)",
        ),
        ParameterDefinition(
            name="renewable_energy_pct",
            data_type=DataType.NUMBER,
            unit="%",
            description="Percentage of energy from renewable sources",
        ),
    ]


class ParameterStore:
    """Persist parameter definitions and values into SQLite."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def sync(self, definitions: Iterable[ParameterDefinition]) -> int:
        """Upsert *definitions*; a parameter's data type is never changed."""

        entries = list(definitions)
        existing = self.data_types()
        with sqlite3.connect(self.path) as connection:
            connection.execute("PRAGMA foreign_keys = ON")
            for definition in entries:
                current = existing.get(definition.name)
                if current is not None and current is not definition.data_type:
                    logger.warning(
                        "Parameter %s is stored as %s; ignoring redefinition as %s",
                        definition.name,
                        current.value,
                        definition.data_type.value,
                    )
                connection.execute(
                    """
                    INSERT INTO parameters (name, data_type, unit, description)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET
                        unit=COALESCE(excluded.unit, parameters.unit),
                        description=COALESCE(excluded.description, parameters.description),
                        updated_at=CURRENT_TIMESTAMP
                    """,
                    (
                        definition.name,
                        definition.data_type.value,
                        definition.unit,
                        definition.description,
                    ),
                )
        logger.info("Synchronized %d parameter definition(s)", len(entries))
        return len(entries)

    def data_types(self) -> Dict[str, DataType]:
        with sqlite3.connect(self.path) as connection:
            rows = connection.execute("SELECT name, data_type FROM parameters").fetchall()
        return {name: DataType.parse(data_type) for name, data_type in rows}

    def record_values(self, values: Iterable[ParameterValue]) -> int:
        """Upsert values keyed by company, parameter and as-of date."""

        count = 0
        with sqlite3.connect(self.path) as connection:
            connection.execute("PRAGMA foreign_keys = ON")
            for entry in values:
                connection.execute(
                    """
                    INSERT INTO parameter_values (
                        company_id, parameter_name, as_of_date, value, source
                    ) VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(company_id, parameter_name, as_of_date) DO UPDATE SET
                        value=excluded.value,
                        source=excluded.source,
                        recorded_at=CURRENT_TIMESTAMP
                    """,
                    (
                        entry.company_id,
                        entry.parameter,
                        entry.as_of_date.isoformat(),
                        json.dumps(entry.value, ensure_ascii=False),
                        entry.source,
                    ),
                )
                count += 1
        return count

    def value_history(
        self, company_id: str, parameter: Optional[str] = None
    ) -> List[ParameterValue]:
        query = (
            "SELECT company_id, parameter_name, as_of_date, value, source "
            "FROM parameter_values WHERE company_id = ?"
        )
        params: List[object] = [company_id]
        if parameter is not None:
            query += " AND parameter_name = ?"
            params.append(parameter)
        query += " ORDER BY parameter_name, as_of_date DESC"
        with sqlite3.connect(self.path) as connection:
            connection.row_factory = sqlite3.Row
            rows = connection.execute(query, params).fetchall()
        return [
            ParameterValue(
                company_id=row["company_id"],
                parameter=row["parameter_name"],
                as_of_date=date.fromisoformat(row["as_of_date"]),
                value=json.loads(row["value"]),
                source=row["source"],
            )
            for row in rows
        ]


__all__ = [
    "ParameterDefinition",
    "ParameterStore",
    "ParameterValue",
    "parameter_catalog",
]
